"""
GitHub Actions ``workflow_dispatch`` adapter.

Posts the build trigger for a materialized run. Network errors, 5xx and 429
responses are retried with exponential backoff. A 422 rejecting the inputs
degrades to a dispatch carrying only ``runId`` and then to one with no inputs.
"""

from __future__ import annotations

import re
from typing import Any

import httpx
from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from ..core.config import Config, get_config
from ..core.exceptions import DispatchError
from ..core.logging import get_logger

logger = get_logger(__name__)

API_VERSION = "2022-11-28"
_INPUTS_REJECTED = re.compile(r"Unexpected inputs|cannot be used", re.IGNORECASE)


class DispatchResult(BaseModel):
    """Outcome of a workflow dispatch."""

    ok: bool = True
    degraded: bool = Field(default=False, description="Inputs were dropped after a 422")
    url: str
    ref: str
    inputs: dict[str, str] = Field(default_factory=dict, description="Inputs actually sent")
    status_code: int = 204


def normalize_workflow_id(workflow_id: str) -> str:
    """Numeric ids pass through; bare names get a ``.yml`` suffix."""
    if workflow_id.isdigit() or workflow_id.endswith((".yml", ".yaml")):
        return workflow_id
    return f"{workflow_id}.yml"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, DispatchError) and exc.retryable


class WorkflowDispatcher:
    """Triggers the Android build workflow for a run."""

    def __init__(
        self,
        config: Config | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        wait: wait_base | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Configuration providing the ``github`` section and ``GH_PAT``.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
            wait: Retry wait strategy; exponential 2-30s by default.
        """
        self.config = config or get_config()
        self.settings = self.config.github
        self._transport = transport
        self._wait = wait or wait_exponential(multiplier=1, min=2, max=30)

    @property
    def url(self) -> str:
        s = self.settings
        workflow = normalize_workflow_id(s.workflow_id)
        return f"{s.api_url.rstrip('/')}/repos/{s.owner}/{s.repo}/actions/workflows/{workflow}/dispatches"

    def _headers(self) -> dict[str, str]:
        token = self.config.github_token.get_secret_value() if self.config.github_token else ""
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _check_ready(self) -> None:
        missing = [
            name
            for name, value in (
                ("GH_OWNER", self.settings.owner),
                ("GH_REPO", self.settings.repo),
                ("GH_PAT", self.config.github_token.get_secret_value() if self.config.github_token else ""),
            )
            if not value
        ]
        if missing:
            raise DispatchError(
                message=f"Missing environment: {', '.join(missing)}",
                operation="configure",
                context={"missing": missing},
            )

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        """POST once, retrying transient failures. Returns non-retryable responses as-is."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_retries),
            wait=self._wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                response = await client.post(self.url, json=body, headers=self._headers())
                if response.status_code == 429 or response.status_code >= 500:
                    logger.warning(
                        "Dispatch transient failure",
                        status=response.status_code,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise DispatchError(
                        message=f"GitHub {response.status_code}: {response.text[:200]}",
                        operation="dispatch",
                        retryable=True,
                        status_code=response.status_code,
                    )
        return response

    async def dispatch(self, run_id: str, inputs: dict[str, Any] | None = None) -> DispatchResult:
        """Dispatch the workflow for ``run_id``.

        ``runId`` is always included in the inputs. Input values are sent as
        strings, as GitHub requires.

        Raises:
            DispatchError: when configuration is missing or GitHub refuses every attempt.
        """
        self._check_ready()
        sent = {k: str(v) for k, v in (inputs or {}).items() if v is not None}
        sent["runId"] = run_id
        ref = self.settings.branch
        attempts: list[tuple[dict[str, str], bool]] = [(sent, False), ({"runId": run_id}, True), ({}, True)]

        async with httpx.AsyncClient(timeout=self.settings.timeout_seconds, transport=self._transport) as client:
            failures: list[str] = []
            for index, (payload, degraded) in enumerate(attempts):
                body: dict[str, Any] = {"ref": ref}
                if payload:
                    body["inputs"] = payload
                try:
                    response = await self._post(client, body)
                except httpx.TransportError as e:
                    raise DispatchError(
                        message=f"GitHub unreachable: {e}",
                        operation="dispatch",
                        retryable=True,
                        context={"run_id": run_id},
                        cause=e,
                    ) from e
                if response.is_success:
                    log = logger.warning if degraded else logger.info
                    log("Workflow dispatched", run_id=run_id, degraded=degraded, ref=ref)
                    return DispatchResult(
                        degraded=degraded, url=self.url, ref=ref, inputs=payload, status_code=response.status_code
                    )
                failures.append(f"{response.status_code}: {response.text[:200]}")
                inputs_rejected = response.status_code == 422 and _INPUTS_REJECTED.search(response.text)
                if not inputs_rejected or index == len(attempts) - 1:
                    break
                logger.info("Dispatch inputs rejected, degrading", run_id=run_id, step=index + 1)

        raise DispatchError(
            message=f"GitHub dispatch failed :: {self.url} :: {' :: '.join(failures)}",
            operation="dispatch",
            status_code=response.status_code,
            context={"run_id": run_id},
        )
