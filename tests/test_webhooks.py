"""
Render callback / status polling tests.

Tests cover:
1. Metadata parsing (string or object, missing ids)
2. Unknown request -> 404, wrong user -> 403
3. Success marks the render, increments usage exactly once
4. Failure records render_error without touching usage
5. Polling applies the same transition
"""
import sys
import os
import asyncio
import json
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pipeline import VideoGenerationPipeline
from schemas import RenderCallback
from utils.constants import ACTION_RENDER_CALLBACK
from utils.errors import CallbackRejectedError
from conftest import USER_ID, FakeLLM, FakeRenderer


def _completed_request(repo, render_id="render-1"):
    async def setup():
        request = await repo.create_request(USER_ID, {})
        await repo.complete_request(request.id, {"script_id": "s"}, render_id)
        return request.id

    return asyncio.run(setup())


def _callback(request_id, user_id=USER_ID, status="succeeded", as_string=True, **extra):
    metadata = {"requestId": request_id, "userId": user_id, "scriptId": "s"}
    data = {
        "id": "render-1",
        "status": status,
        "url": "https://cdn.creatomate.com/render-1.mp4",
        "metadata": json.dumps(metadata) if as_string else metadata,
    }
    data.update(extra)
    return RenderCallback.model_validate(data)


def _handle(pipeline, callback):
    return asyncio.run(pipeline.handle_render_callback(callback))


@pytest.fixture
def pipeline(repo):
    return VideoGenerationPipeline(repo, FakeLLM(), FakeRenderer())


class TestCallbackRejection:

    def test_missing_metadata(self, pipeline):
        callback = RenderCallback(id="r", status="succeeded")
        with pytest.raises(CallbackRejectedError) as exc:
            _handle(pipeline, callback)
        assert exc.value.status_code == 400
        assert exc.value.code == "MISSING_METADATA"

    def test_invalid_metadata_json(self, pipeline):
        callback = RenderCallback(id="r", status="succeeded", metadata="{not json")
        with pytest.raises(CallbackRejectedError) as exc:
            _handle(pipeline, callback)
        assert exc.value.code == "INVALID_METADATA"

    def test_missing_user_id(self, pipeline):
        callback = RenderCallback(id="r", status="succeeded", metadata={"requestId": "req-1"})
        with pytest.raises(CallbackRejectedError) as exc:
            _handle(pipeline, callback)
        assert exc.value.status_code == 400

    def test_unknown_request(self, pipeline):
        with pytest.raises(CallbackRejectedError) as exc:
            _handle(pipeline, _callback("req-missing"))
        assert exc.value.status_code == 404
        assert exc.value.code == "REQUEST_NOT_FOUND"

    def test_user_mismatch(self, repo, pipeline):
        request_id = _completed_request(repo)
        with pytest.raises(CallbackRejectedError) as exc:
            _handle(pipeline, _callback(request_id, user_id="someone-else"))
        assert exc.value.status_code == 403
        assert repo.requests[request_id]["render_status"] == "pending"


class TestCallbackApplied:

    def test_success_increments_usage_once(self, repo, pipeline):
        request_id = _completed_request(repo)
        first = _handle(pipeline, _callback(request_id, duration=31.5))
        second = _handle(pipeline, _callback(request_id, as_string=False))

        row = repo.requests[request_id]
        assert first["applied"] is True
        assert second["applied"] is False
        assert row["render_status"] == "succeeded"
        assert row["render_url"] == "https://cdn.creatomate.com/render-1.mp4"
        assert row["duration_seconds"] == 31.5
        assert repo.increments == [(USER_ID, "videos_generated")]
        assert [a["action"] for a in repo.activity] == [ACTION_RENDER_CALLBACK] * 2

    def test_failure_records_error(self, repo, pipeline):
        request_id = _completed_request(repo)
        _handle(pipeline, _callback(request_id, status="failed", url=None, error="Source not found"))
        row = repo.requests[request_id]
        assert row["render_status"] == "failed"
        assert row["render_error"] == "Source not found"
        assert row["status"] == "completed"
        assert repo.increments == []

    def test_intermediate_status_ignored(self, repo, pipeline):
        request_id = _completed_request(repo)
        result = _handle(pipeline, _callback(request_id, status="rendering"))
        assert result["applied"] is False
        assert repo.requests[request_id]["render_status"] == "pending"


class TestPolling:

    def test_refresh_applies_terminal_render(self, repo):
        request_id = _completed_request(repo)
        renderer = FakeRenderer(render={"id": "render-1", "status": "succeeded", "url": "https://x/y.mp4"})
        pipeline = VideoGenerationPipeline(repo, FakeLLM(), renderer)

        async def refresh():
            request = await repo.get_request(request_id)
            return await pipeline.refresh_render_status(request)

        refreshed = asyncio.run(refresh())
        assert refreshed.render_status.value == "succeeded"
        assert refreshed.render_url == "https://x/y.mp4"
        assert repo.increments == [(USER_ID, "videos_generated")]

    def test_refresh_skips_queued(self, repo):
        renderer = FakeRenderer(render={"status": "succeeded"})
        pipeline = VideoGenerationPipeline(repo, FakeLLM(), renderer)

        async def refresh():
            request = await repo.create_request(USER_ID, {})
            return await pipeline.refresh_render_status(request)

        assert asyncio.run(refresh()).status.value == "queued"
        assert repo.increments == []
