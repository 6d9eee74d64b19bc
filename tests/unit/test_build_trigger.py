"""Tests for the GitHub repository_dispatch build trigger."""

import asyncio
import json

import httpx
import pytest

from inlinepatch.integrations import BuildTrigger, SyncTriggerError
from inlinepatch.integrations.build_trigger import DISPATCH_EVENT, GITHUB_API_VERSION


def recording_transport(status=204, text=""):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, text=text)

    return httpx.MockTransport(handler), seen


class TestTrigger:
    def test_dispatch_request(self):
        transport, seen = recording_transport()
        trigger = BuildTrigger("tok", "acme/site", transport=transport)
        result = asyncio.run(trigger.trigger({"editId": "abc"}))

        assert result.status_code == 204
        assert result.event_type == DISPATCH_EVENT
        request = seen[0]
        assert str(request.url) == "https://api.github.com/repos/acme/site/dispatches"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "application/vnd.github+json"
        assert request.headers["X-GitHub-Api-Version"] == GITHUB_API_VERSION
        body = json.loads(request.content)
        assert body["event_type"] == "apply-edits"
        assert body["client_payload"]["editId"] == "abc"
        assert "timestamp" in body["client_payload"]

    def test_custom_api_url(self):
        trigger = BuildTrigger("tok", "acme/site", api_url="https://ghe.example/api/v3/")
        assert trigger.dispatch_url == "https://ghe.example/api/v3/repos/acme/site/dispatches"

    def test_rejected_dispatch(self):
        transport, _ = recording_transport(status=404, text='{"message": "Not Found"}')
        trigger = BuildTrigger("tok", "acme/site", transport=transport)
        with pytest.raises(SyncTriggerError) as excinfo:
            asyncio.run(trigger.trigger())
        assert excinfo.value.status_code == 404
        assert "Not Found" in excinfo.value.details
        assert str(excinfo.value) == "Failed to trigger sync"

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        trigger = BuildTrigger("tok", "acme/site", transport=httpx.MockTransport(handler))
        with pytest.raises(SyncTriggerError) as excinfo:
            asyncio.run(trigger.trigger())
        assert str(excinfo.value).startswith("Failed to trigger sync:")
        assert excinfo.value.status_code is None

    @pytest.mark.parametrize("token,repo", [("", "acme/site"), ("tok", "")])
    def test_missing_configuration(self, token, repo):
        trigger = BuildTrigger(token, repo)
        assert trigger.configured is False
        with pytest.raises(SyncTriggerError, match="GitHub configuration missing"):
            asyncio.run(trigger.trigger())
