"""
Materialization audit models.

AnchorChange records are the only persisted evidence of what was injected
into the template, so every edit produces one, including misses.
"""

from __future__ import annotations

from pydantic import Field

from .contract import CamelModel


class AnchorChange(CamelModel):
    """One marker edit attempt in one file."""

    file: str
    marker: str
    found: bool = False
    replaced_count: int = 0
    before_sample: str = ""
    after_sample: str = ""


class FileApplyResult(CamelModel):
    """All changes for one target file."""

    file: str
    changes: list[AnchorChange] = Field(default_factory=list)

    @property
    def replaced_total(self) -> int:
        return sum(c.replaced_count for c in self.changes)


class MaterializeResult(CamelModel):
    """Outcome of a materialization run."""

    run_id: str
    template: str
    output_dir: str | None = Field(default=None, description="Published app/ tree, None on abort")
    files: list[FileApplyResult] = Field(default_factory=list)
    written: list[str] = Field(default_factory=list, description="Auxiliary and companion files")
    skipped: list[str] = Field(default_factory=list)
    critical_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def critical_total(self) -> int:
        return sum(self.critical_counts.values())

    def count_for(self, marker: str) -> int:
        return sum(
            c.replaced_count for f in self.files for c in f.changes if c.marker == marker
        )
