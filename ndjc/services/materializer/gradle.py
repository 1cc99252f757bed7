"""
Brace-aware editor for Groovy Gradle build files.

Blocks are located by scanning braces outside of strings and comments, so
edits go into the right ``android { defaultConfig { ... } }`` scope instead of
being patched in with regexes over the whole file.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

INDENT = "    "

_BLOCK_NAME = re.compile(r"([A-Za-z_][\w.]*)\s*(?:\([^()]*\))?\s*$")


@dataclass
class GradleBlock:
    """A brace-delimited block and its line span."""

    name: str
    path: tuple[str, ...]
    open_line: int
    close_line: int | None = None
    children: list[GradleBlock] = field(default_factory=list)


def scan_braces(lines: Sequence[str]) -> Iterator[tuple[int, int, str]]:
    """Yield ``(line, column, char)`` for structural braces.

    Braces inside single, double or triple quoted strings and inside line or
    block comments are ignored.
    """
    in_block_comment = False
    quote: str | None = None
    for row, line in enumerate(lines):
        col = 0
        while col < len(line):
            chunk = line[col:]
            if in_block_comment:
                end = line.find("*/", col)
                if end == -1:
                    break
                in_block_comment = False
                col = end + 2
                continue
            if quote is not None:
                if chunk.startswith("\\"):
                    col += 2
                    continue
                if chunk.startswith(quote):
                    col += len(quote)
                    quote = None
                    continue
                col += 1
                continue
            if chunk.startswith("//"):
                break
            if chunk.startswith("/*"):
                in_block_comment = True
                col += 2
                continue
            for candidate in ('"""', "'''", '"', "'"):
                if chunk.startswith(candidate):
                    quote = candidate
                    col += len(candidate)
                    break
            else:
                if line[col] in "{}":
                    yield row, col, line[col]
                col += 1
        # Single-quoted strings never span lines
        if quote in ('"', "'"):
            quote = None


class GradleEditor:
    """Structured line editor for a Gradle build script."""

    def __init__(self, text: str) -> None:
        self.lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        if self.lines and self.lines[-1] == "":
            self.lines.pop()

    # -- structure ---------------------------------------------------------

    def blocks(self) -> list[GradleBlock]:
        """Parse the block tree. Unclosed blocks keep ``close_line=None``."""
        roots: list[GradleBlock] = []
        stack: list[GradleBlock] = []
        for row, col, char in scan_braces(self.lines):
            if char == "{":
                match = _BLOCK_NAME.search(self.lines[row][:col])
                name = match.group(1) if match else ""
                parent_path = stack[-1].path if stack else ()
                block = GradleBlock(name=name, path=parent_path + (name,), open_line=row)
                (stack[-1].children if stack else roots).append(block)
                stack.append(block)
            elif stack:
                stack.pop().close_line = row
        return roots

    def find_block(self, path: str | Sequence[str]) -> GradleBlock | None:
        wanted = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
        candidates = self.blocks()
        found: GradleBlock | None = None
        for name in wanted:
            found = next((b for b in candidates if b.name == name), None)
            if found is None:
                return None
            candidates = found.children
        return found

    def _indent_of(self, row: int) -> str:
        line = self.lines[row]
        return line[: len(line) - len(line.lstrip())]

    def _child_rows(self, block: GradleBlock) -> list[int]:
        """Rows directly inside ``block`` (not inside nested blocks)."""
        if block.close_line is None:
            return []
        nested: set[int] = set()
        for child in block.children:
            end = child.close_line if child.close_line is not None else block.close_line
            nested.update(range(child.open_line, end + 1))
        return [r for r in range(block.open_line + 1, block.close_line) if r not in nested]

    # -- edits -------------------------------------------------------------

    def ensure_block(self, path: str | Sequence[str]) -> GradleBlock:
        """Return the block at ``path``, creating missing levels at the end of their parent."""
        parts = path.split(".") if isinstance(path, str) else list(path)
        for depth in range(1, len(parts) + 1):
            if self.find_block(parts[:depth]) is not None:
                continue
            name = parts[depth - 1]
            if depth == 1:
                self.lines.extend(["", f"{name} {{", "}"])
            else:
                parent = self.find_block(parts[: depth - 1])
                assert parent is not None and parent.close_line is not None
                indent = self._indent_of(parent.open_line) + INDENT
                self.lines[parent.close_line : parent.close_line] = [f"{indent}{name} {{", f"{indent}}}"]
        block = self.find_block(parts)
        assert block is not None
        return block

    def set_property(self, path: str | Sequence[str], name: str, value: str) -> bool:
        """Set ``name value`` directly inside the block, uncommenting a disabled line.

        Returns True when the file changed.
        """
        block = self.ensure_block(path)
        assert block.close_line is not None
        pattern = re.compile(rf"^(\s*)(?://\s*)?{re.escape(name)}\b(?:\s|=|\(|$)")
        new_body = f"{name} {value}"
        for row in self._child_rows(block):
            match = pattern.match(self.lines[row])
            if match:
                new_line = match.group(1) + new_body
                changed = self.lines[row] != new_line
                self.lines[row] = new_line
                return changed
        indent = self._indent_of(block.open_line) + INDENT
        self.lines.insert(block.close_line, indent + new_body)
        return True

    def append_lines(self, path: str | Sequence[str], lines: Iterable[str]) -> int:
        """Append lines at the end of a block, skipping ones already present."""
        block = self.ensure_block(path)
        assert block.close_line is not None
        existing = {self.lines[r].strip() for r in self._child_rows(block)}
        indent = self._indent_of(block.open_line) + INDENT
        added = [indent + line.strip() for line in lines if line.strip() and line.strip() not in existing]
        self.lines[block.close_line : block.close_line] = added
        return len(added)

    def uncomment(self, name: str) -> bool:
        """Uncomment ``// name ...`` lines when no active ``name`` line exists."""
        active = re.compile(rf"^\s*{re.escape(name)}\b")
        commented = re.compile(rf"^(\s*)//\s*({re.escape(name)}\b.*)$")
        if any(active.match(line) for line in self.lines):
            return False
        changed = False
        for row, line in enumerate(self.lines):
            match = commented.match(line)
            if match:
                self.lines[row] = match.group(1) + match.group(2)
                changed = True
        return changed

    def balance(self) -> int:
        """Drop stray closing-brace lines and close unclosed blocks.

        Returns the number of lines removed or added.
        """
        depth = 0
        stray: list[int] = []
        for row, _, char in scan_braces(self.lines):
            if char == "{":
                depth += 1
            elif depth == 0:
                if self.lines[row].strip() == "}":
                    stray.append(row)
            else:
                depth -= 1
        for row in reversed(stray):
            del self.lines[row]
        self.lines.extend("}" for _ in range(depth))
        return len(stray) + depth

    def text(self) -> str:
        return "\n".join(line.rstrip() for line in self.lines) + "\n"


def stabilize(text: str) -> str:
    """Syntax repairs applied after all edits: line endings, braces, resConfigs."""
    editor = GradleEditor(text)
    editor.balance()
    editor.uncomment("resConfigs")
    collapsed: list[str] = []
    for line in editor.lines:
        if not line.strip() and collapsed and not collapsed[-1].strip():
            continue
        collapsed.append(line)
    editor.lines = collapsed
    return editor.text()


def groovy_string(value: str) -> str:
    """Double-quoted Groovy string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'
