"""
Shared fakes for ClipScript tests.

FakeRepository keeps rows in memory and applies the same status guards as
the Supabase queries. FakeLLM replays queued responses. FakeRenderer records
submitted templates.
"""
import asyncio
import itertools
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schemas import (
    ACTIVE_STATUSES,
    AuthUser,
    EditorialProfile,
    GenerationRequest,
    RenderStatus,
    RequestStatus,
    ScriptDraft,
    SourceClip,
)
from utils.error_manager import ErrorManager
from utils.errors import ExternalServiceError
from utils.llm_utils import parse_llm_model


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeRepository:
    def __init__(self):
        self._ids = itertools.count(1)
        self.requests: Dict[str, Dict[str, Any]] = {}
        self.scripts: Dict[str, Dict[str, Any]] = {}
        self.deleted_scripts: List[str] = []
        self.clips: Dict[str, SourceClip] = {}
        self.users: Dict[str, AuthUser] = {}
        self.usage: Dict[str, Dict[str, Any]] = {}
        self.increments: List[tuple] = []
        self.profiles: Dict[str, EditorialProfile] = {}
        self.drafts: Dict[str, Dict[str, Any]] = {}
        self.activity: List[Dict[str, Any]] = []
        self.training_data: List[Dict[str, Any]] = []

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # --- video_requests ---

    async def create_request(self, user_id, payload):
        row = {
            "id": self._next_id("req"),
            "user_id": user_id,
            "status": RequestStatus.QUEUED.value,
            "payload": payload,
            "created_at": _now(),
        }
        self.requests[row["id"]] = row
        return GenerationRequest.model_validate(row)

    async def get_request(self, request_id):
        row = self.requests.get(request_id)
        return GenerationRequest.model_validate(row) if row else None

    async def get_user_request(self, request_id, user_id):
        row = self.requests.get(request_id)
        if row is None or row["user_id"] != user_id:
            return None
        return GenerationRequest.model_validate(row)

    async def list_user_requests(self, user_id, limit=50):
        rows = [r for r in self.requests.values() if r["user_id"] == user_id]
        return [GenerationRequest.model_validate(r) for r in rows[:limit]]

    async def queue_position(self, request):
        earlier = [
            r for r in self.requests.values()
            if r["status"] == RequestStatus.QUEUED.value and r["created_at"] < request.created_at
        ]
        return len(earlier) + 1

    def _guarded_update(self, request_id, updates, allowed):
        row = self.requests.get(request_id)
        if row is None or row["status"] not in allowed:
            return False
        row.update(updates)
        return True

    async def mark_processing(self, request_id):
        return self._guarded_update(
            request_id,
            {"status": RequestStatus.PROCESSING.value, "processing_started_at": _now()},
            [RequestStatus.QUEUED.value],
        )

    async def complete_request(self, request_id, result_data, render_id):
        return self._guarded_update(
            request_id,
            {
                "status": RequestStatus.COMPLETED.value,
                "completed_at": _now(),
                "result_data": result_data,
                "render_id": render_id,
                "render_status": RenderStatus.PENDING.value,
            },
            [s.value for s in ACTIVE_STATUSES],
        )

    async def fail_request(self, request_id, error_message):
        return self._guarded_update(
            request_id,
            {"status": RequestStatus.FAILED.value, "completed_at": _now(), "error_message": error_message},
            [s.value for s in ACTIVE_STATUSES],
        )

    async def update_render_status(
        self, request_id, render_status, render_url=None, render_error=None, duration_seconds=None
    ):
        row = self.requests.get(request_id)
        if (
            row is None
            or row["status"] != RequestStatus.COMPLETED.value
            or row.get("render_status") != RenderStatus.PENDING.value
        ):
            return False
        row["render_status"] = render_status.value
        if render_url is not None:
            row["render_url"] = render_url
        if render_error is not None:
            row["render_error"] = render_error
        if duration_seconds is not None:
            row["duration_seconds"] = duration_seconds
        return True

    async def find_stuck_requests(self, started_before):
        return [
            GenerationRequest.model_validate(r)
            for r in self.requests.values()
            if r["status"] == RequestStatus.PROCESSING.value
            and r.get("processing_started_at")
            and r["processing_started_at"] < started_before
        ]

    # --- scripts ---

    async def create_script(self, user_id, raw_prompt, script, output_language):
        script_id = self._next_id("script")
        self.scripts[script_id] = {
            "user_id": user_id,
            "raw_prompt": raw_prompt,
            "generated_script": script,
            "output_language": output_language,
        }
        return script_id

    async def delete_script(self, script_id):
        self.scripts.pop(script_id, None)
        self.deleted_scripts.append(script_id)

    # --- clips ---

    def add_clip(self, clip: SourceClip):
        self.clips[clip.id] = clip

    async def get_clips(self, user_id, clip_ids):
        return [c for c in self.clips.values() if c.id in clip_ids and c.user_id == user_id]

    async def list_clips(self, user_id):
        return [c for c in self.clips.values() if c.user_id == user_id]

    async def create_clip(self, user_id, data):
        clip = SourceClip.model_validate(dict(data, id=self._next_id("clip"), user_id=user_id))
        self.clips[clip.id] = clip
        return clip

    async def update_clip(self, user_id, clip_id, data):
        clip = self.clips.get(clip_id)
        if clip is None or clip.user_id != user_id:
            return None
        clip = clip.model_copy(update=data)
        self.clips[clip_id] = clip
        return clip

    # --- users / usage ---

    async def get_user_by_clerk_id(self, clerk_user_id):
        return self.users.get(clerk_user_id)

    async def get_usage(self, user_id):
        return self.usage.get(user_id)

    async def increment_usage(self, user_id, field):
        self.increments.append((user_id, field))
        row = self.usage.setdefault(user_id, {})
        row[field] = (row.get(field) or 0) + 1

    async def get_editorial_profile(self, user_id):
        return self.profiles.get(user_id)

    # --- drafts ---

    async def create_draft(self, draft):
        row = dict(draft, id=self._next_id("draft"), created_at=_now(), updated_at=_now())
        self.drafts[row["id"]] = row
        return ScriptDraft.model_validate(row)

    async def update_draft(self, draft_id, user_id, updates):
        row = self.drafts.get(draft_id)
        if row is None or row["user_id"] != user_id:
            return None
        row.update(updates, updated_at=_now())
        return ScriptDraft.model_validate(row)

    async def get_draft(self, draft_id, user_id):
        row = self.drafts.get(draft_id)
        if row is None or row["user_id"] != user_id:
            return None
        return ScriptDraft.model_validate(row)

    async def list_drafts(self, user_id, limit=50):
        return [ScriptDraft.model_validate(r) for r in self.drafts.values() if r["user_id"] == user_id]

    async def delete_draft(self, draft_id, user_id):
        row = self.drafts.get(draft_id)
        if row is None or row["user_id"] != user_id:
            return False
        del self.drafts[draft_id]
        return True

    # --- logs ---

    async def log_activity(self, user_id, action, details):
        self.activity.append({"user_id": user_id, "action": action, "details": details})

    async def save_training_data(self, row):
        self.training_data.append(row)


class FakeLLM:
    """
    Replays queued responses.

    text_responses feed complete_text / stream_text, structured_responses feed
    complete_structured. A queued Exception instance is raised instead.
    """

    def __init__(self, text_responses=None, structured_responses=None, delay: float = 0):
        self.text_responses = list(text_responses or [])
        self.structured_responses = list(structured_responses or [])
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def _next(self, queue, kind, system, user):
        self.calls.append({"kind": kind, "system": system, "user": user})
        if self.delay:
            await asyncio.sleep(self.delay)
        if not queue:
            raise ExternalServiceError(f"No queued {kind} response")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def complete_text(self, system, user, model=None, history=None, **kwargs):
        return await self._next(self.text_responses, "text", system, user)

    async def complete_structured(self, system, user, model_cls, model=None, **kwargs):
        item = await self._next(self.structured_responses, "structured", system, user)
        if isinstance(item, str):
            return parse_llm_model(item, model_cls)
        return model_cls.model_validate(item)

    async def stream_text(self, system, user, model=None, history=None):
        text = await self._next(self.text_responses, "stream", system, user)
        for i, word in enumerate(text.split(" ")):
            yield word if i == 0 else " " + word


class FakeRenderer:
    def __init__(self, render_id: str = "render-1", render: Optional[Dict[str, Any]] = None):
        self.render_id = render_id
        self.render = render
        self.submitted: List[Dict[str, Any]] = []

    async def submit(self, template, metadata):
        self.submitted.append({"template": template, "metadata": metadata})
        return self.render_id

    async def get_render(self, render_id):
        return self.render


USER_ID = "user-1"


def make_clip(clip_id="clip-1", duration=10.0, user_id=USER_ID, **overrides) -> SourceClip:
    data = {
        "id": clip_id,
        "title": f"Clip {clip_id}",
        "description": "b-roll",
        "upload_url": f"https://cdn.example.com/clips/{clip_id}.mp4",
        "tags": ["broll"],
        "user_id": user_id,
        "duration_seconds": duration,
    }
    data.update(overrides)
    return SourceClip.model_validate(data)


def clip_payload(clip: SourceClip) -> Dict[str, Any]:
    return {"id": clip.id, "title": clip.title, "upload_url": clip.upload_url, "tags": clip.tags}


def make_body(**overrides) -> Dict[str, Any]:
    body = {
        "prompt": "Why morning walks beat coffee",
        "systemPrompt": "",
        "selectedVideos": [clip_payload(make_clip())],
        "outputLanguage": "en",
    }
    body.update(overrides)
    return body


def scene(number: int, words: int, clip: SourceClip, **asset) -> Dict[str, Any]:
    video_asset = {"id": clip.id, "url": clip.upload_url, "title": clip.title}
    video_asset.update(asset)
    return {
        "scene_number": number,
        "script_text": " ".join(["word"] * words),
        "video_asset": video_asset,
    }


@pytest.fixture(autouse=True)
def isolated_error_log(tmp_path, monkeypatch):
    monkeypatch.setattr(ErrorManager, "LOG_FILE", str(tmp_path / "api_errors.log"))


@pytest.fixture
def repo():
    repository = FakeRepository()
    repository.add_clip(make_clip())
    repository.users["clerk_1"] = AuthUser(id=USER_ID, clerk_user_id="clerk_1", email="a@example.com")
    repository.usage[USER_ID] = {
        "videos_generated": 0,
        "videos_limit": 10,
        "source_videos_used": 0,
        "source_videos_limit": 5,
    }
    return repository
