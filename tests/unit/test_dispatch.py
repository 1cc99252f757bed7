"""Unit tests for the GitHub workflow dispatcher."""

import json

import httpx
import pytest
from pydantic import SecretStr
from tenacity import wait_none

from ndjc.core.config import Config, GitHubConfig
from ndjc.core.exceptions import DispatchError
from ndjc.integrations import WorkflowDispatcher, normalize_workflow_id


@pytest.fixture
def gh_config():
    return Config(
        github=GitHubConfig(owner="acme", repo="apps", branch="release", workflow_id="android-build"),
        github_token=SecretStr("token-123"),
    )


class Recorder:
    """Mock GitHub endpoint replaying canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        status, text = outcome
        return httpx.Response(status, text=text)

    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


def make_dispatcher(config, recorder):
    return WorkflowDispatcher(config=config, transport=httpx.MockTransport(recorder), wait=wait_none())


@pytest.mark.parametrize(
    "workflow_id,expected",
    [("android-build", "android-build.yml"), ("build.yaml", "build.yaml"), ("12345", "12345")],
)
def test_normalize_workflow_id(workflow_id, expected):
    """Test workflow ids get a .yml suffix unless numeric or already suffixed."""
    assert normalize_workflow_id(workflow_id) == expected


@pytest.mark.asyncio
class TestWorkflowDispatcher:
    """Tests for workflow_dispatch calls."""

    async def test_dispatch(self, gh_config):
        """Test a successful dispatch sends runId and string inputs."""
        recorder = Recorder((204, ""))
        result = await make_dispatcher(gh_config, recorder).dispatch("run-1", {"abi": "arm64", "debug": True})

        assert result.ok
        assert not result.degraded
        assert result.url == "https://api.github.com/repos/acme/apps/actions/workflows/android-build.yml/dispatches"
        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer token-123"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert recorder.bodies() == [
            {"ref": "release", "inputs": {"abi": "arm64", "debug": "True", "runId": "run-1"}}
        ]

    async def test_degrades_on_rejected_inputs(self, gh_config):
        """Test a 422 about inputs retries with runId only, then with no inputs."""
        recorder = Recorder(
            (422, '{"message": "Unexpected inputs provided: [\\"abi\\"]"}'),
            (422, '{"message": "Unexpected inputs provided: [\\"runId\\"]"}'),
            (204, ""),
        )
        result = await make_dispatcher(gh_config, recorder).dispatch("run-2", {"abi": "arm64"})

        assert result.degraded
        assert result.inputs == {}
        assert recorder.bodies() == [
            {"ref": "release", "inputs": {"abi": "arm64", "runId": "run-2"}},
            {"ref": "release", "inputs": {"runId": "run-2"}},
            {"ref": "release"},
        ]

    async def test_other_422_does_not_degrade(self, gh_config):
        """Test unrelated client errors fail immediately."""
        recorder = Recorder((422, '{"message": "No ref found for: release"}'))
        with pytest.raises(DispatchError) as exc_info:
            await make_dispatcher(gh_config, recorder).dispatch("run-3")
        assert exc_info.value.status_code == 422
        assert len(recorder.requests) == 1

    async def test_degrading_stops_on_other_failures(self, gh_config):
        """Test a non-input failure after the first degrade step is not retried without inputs."""
        recorder = Recorder(
            (422, '{"message": "Unexpected inputs provided: [\\"abi\\"]"}'),
            (404, '{"message": "Not Found"}'),
            (204, ""),
        )
        with pytest.raises(DispatchError) as exc_info:
            await make_dispatcher(gh_config, recorder).dispatch("run-8", {"abi": "arm64"})
        assert exc_info.value.status_code == 404
        assert len(recorder.requests) == 2

    async def test_retries_server_errors(self, gh_config):
        """Test 5xx responses are retried."""
        recorder = Recorder((502, "bad gateway"), (204, ""))
        result = await make_dispatcher(gh_config, recorder).dispatch("run-4")
        assert result.ok
        assert len(recorder.requests) == 2

    async def test_gives_up_after_max_retries(self, gh_config):
        """Test persistent 5xx raises a retryable error."""
        recorder = Recorder((503, "unavailable"))
        with pytest.raises(DispatchError) as exc_info:
            await make_dispatcher(gh_config, recorder).dispatch("run-5")
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503
        assert len(recorder.requests) == gh_config.github.max_retries

    async def test_transport_errors(self, gh_config):
        """Test network failures are retried and then reported as dispatch errors."""
        recorder = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(DispatchError, match="unreachable"):
            await make_dispatcher(gh_config, recorder).dispatch("run-6")
        assert len(recorder.requests) == gh_config.github.max_retries

    async def test_missing_configuration(self):
        """Test missing owner, repo and token are reported together."""
        config = Config(github=GitHubConfig(), github_token=None)
        with pytest.raises(DispatchError) as exc_info:
            await WorkflowDispatcher(config=config).dispatch("run-7")
        assert exc_info.value.context["missing"] == ["GH_OWNER", "GH_REPO", "GH_PAT"]
