"""
Supabase persistence layer

supabase-py 클라이언트는 동기식이므로 asyncio.to_thread 로 감싸서 호출합니다.
스레드에서 실행된 호출은 취소되지 않으므로, 요청의 종료 상태(completed/failed)
기록은 항상 "아직 queued/processing 인 행"에만 적용되도록 조건부로 수행합니다.
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

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
from utils.errors import DatabaseError
from utils.logger import get_logger

logger = get_logger("database")

_ACTIVE = [s.value for s in ACTIVE_STATUSES]


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseRepository:
    """
    Row-level data access for video_requests, scripts, videos, user_usage,
    script_drafts, editorial_profiles, training_data and logs.
    """

    def __init__(self, client=None, url: str = None, key: str = None):
        self.url = url or os.getenv("SUPABASE_URL")
        self.key = key or os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")
        self._client = client

    @property
    def client(self):
        """Lazy initialization of the Supabase client."""
        if self._client is None:
            if not self.url or not self.key:
                raise DatabaseError(
                    "SUPABASE_URL / SUPABASE_SERVICE_KEY are not configured", retryable=False
                )
            from supabase import create_client
            self._client = create_client(self.url, self.key)
        return self._client

    async def _run(self, operation: str, fn: Callable[[], Any]):
        try:
            return await asyncio.to_thread(fn)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Database operation '{operation}' failed: {e}", context={"operation": operation}
            ) from e

    # ------------------------------------------------------------------
    # video_requests
    # ------------------------------------------------------------------

    async def create_request(self, user_id: str, payload: Dict[str, Any]) -> GenerationRequest:
        row = {
            "user_id": user_id,
            "status": RequestStatus.QUEUED.value,
            "payload": payload,
        }
        result = await self._run(
            "create_request",
            lambda: self.client.table("video_requests").insert(row).execute(),
        )
        if not result.data:
            raise DatabaseError("Failed to create video request")
        return GenerationRequest.model_validate(result.data[0])

    async def get_request(self, request_id: str) -> Optional[GenerationRequest]:
        result = await self._run(
            "get_request",
            lambda: self.client.table("video_requests")
            .select("*")
            .eq("id", request_id)
            .limit(1)
            .execute(),
        )
        return GenerationRequest.model_validate(result.data[0]) if result.data else None

    async def get_user_request(self, request_id: str, user_id: str) -> Optional[GenerationRequest]:
        result = await self._run(
            "get_user_request",
            lambda: self.client.table("video_requests")
            .select("*")
            .eq("id", request_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        return GenerationRequest.model_validate(result.data[0]) if result.data else None

    async def list_user_requests(self, user_id: str, limit: int = 50) -> List[GenerationRequest]:
        result = await self._run(
            "list_user_requests",
            lambda: self.client.table("video_requests")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute(),
        )
        return [GenerationRequest.model_validate(r) for r in result.data or []]

    async def queue_position(self, request: GenerationRequest) -> int:
        """queued 요청 중 이 요청보다 먼저 생성된 요청 수 + 1"""
        created = request.created_at.isoformat() if request.created_at else utcnow_iso()
        result = await self._run(
            "queue_position",
            lambda: self.client.table("video_requests")
            .select("id", count="exact")
            .eq("status", RequestStatus.QUEUED.value)
            .lt("created_at", created)
            .execute(),
        )
        return (result.count or 0) + 1

    async def _guarded_update(self, request_id: str, updates: Dict[str, Any], allowed: List[str]) -> bool:
        result = await self._run(
            "update_request",
            lambda: self.client.table("video_requests")
            .update(updates)
            .eq("id", request_id)
            .in_("status", allowed)
            .execute(),
        )
        return bool(result.data)

    async def mark_processing(self, request_id: str) -> bool:
        return await self._guarded_update(
            request_id,
            {"status": RequestStatus.PROCESSING.value, "processing_started_at": utcnow_iso()},
            [RequestStatus.QUEUED.value],
        )

    async def complete_request(
        self, request_id: str, result_data: Dict[str, Any], render_id: str
    ) -> bool:
        """
        렌더 제출 완료 기록.

        Returns:
            False 면 이미 다른 경로(타임아웃/스위퍼)가 종료 상태를 기록한 것
        """
        return await self._guarded_update(
            request_id,
            {
                "status": RequestStatus.COMPLETED.value,
                "completed_at": utcnow_iso(),
                "result_data": result_data,
                "render_id": render_id,
                "render_status": RenderStatus.PENDING.value,
                "error_message": None,
            },
            _ACTIVE,
        )

    async def fail_request(self, request_id: str, error_message: str) -> bool:
        return await self._guarded_update(
            request_id,
            {
                "status": RequestStatus.FAILED.value,
                "completed_at": utcnow_iso(),
                "error_message": error_message,
            },
            _ACTIVE,
        )

    async def update_render_status(
        self,
        request_id: str,
        render_status: RenderStatus,
        render_url: Optional[str] = None,
        render_error: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ) -> bool:
        """render_status pending → 종료 상태 전이. 이미 종료된 경우 False"""
        updates = {"render_status": render_status.value}
        if render_url is not None:
            updates["render_url"] = render_url
        if render_error is not None:
            updates["render_error"] = render_error
        if duration_seconds is not None:
            updates["duration_seconds"] = duration_seconds
        result = await self._run(
            "update_render_status",
            lambda: self.client.table("video_requests")
            .update(updates)
            .eq("id", request_id)
            .eq("status", RequestStatus.COMPLETED.value)
            .eq("render_status", RenderStatus.PENDING.value)
            .execute(),
        )
        return bool(result.data)

    async def find_stuck_requests(self, started_before: datetime) -> List[GenerationRequest]:
        result = await self._run(
            "find_stuck_requests",
            lambda: self.client.table("video_requests")
            .select("*")
            .eq("status", RequestStatus.PROCESSING.value)
            .lt("processing_started_at", started_before.isoformat())
            .execute(),
        )
        return [GenerationRequest.model_validate(r) for r in result.data or []]

    # ------------------------------------------------------------------
    # scripts
    # ------------------------------------------------------------------

    async def create_script(
        self, user_id: str, raw_prompt: str, script: str, output_language: str
    ) -> str:
        row = {
            "user_id": user_id,
            "raw_prompt": raw_prompt,
            "generated_script": script,
            "status": "validated",
            "output_language": output_language,
        }
        result = await self._run(
            "create_script", lambda: self.client.table("scripts").insert(row).execute()
        )
        if not result.data:
            raise DatabaseError("Failed to store generated script")
        return result.data[0]["id"]

    async def delete_script(self, script_id: str):
        await self._run(
            "delete_script",
            lambda: self.client.table("scripts").delete().eq("id", script_id).execute(),
        )

    # ------------------------------------------------------------------
    # videos (source clips)
    # ------------------------------------------------------------------

    async def get_clips(self, user_id: str, clip_ids: List[str]) -> List[SourceClip]:
        result = await self._run(
            "get_clips",
            lambda: self.client.table("videos")
            .select("*")
            .eq("user_id", user_id)
            .in_("id", clip_ids)
            .execute(),
        )
        return [SourceClip.model_validate(r) for r in result.data or []]

    async def list_clips(self, user_id: str) -> List[SourceClip]:
        result = await self._run(
            "list_clips",
            lambda: self.client.table("videos")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute(),
        )
        return [SourceClip.model_validate(r) for r in result.data or []]

    async def create_clip(self, user_id: str, data: Dict[str, Any]) -> SourceClip:
        row = dict(data, user_id=user_id)
        result = await self._run(
            "create_clip", lambda: self.client.table("videos").insert(row).execute()
        )
        if not result.data:
            raise DatabaseError("Failed to save source video")
        return SourceClip.model_validate(result.data[0])

    async def update_clip(self, user_id: str, clip_id: str, data: Dict[str, Any]) -> Optional[SourceClip]:
        result = await self._run(
            "update_clip",
            lambda: self.client.table("videos")
            .update(data)
            .eq("id", clip_id)
            .eq("user_id", user_id)
            .execute(),
        )
        return SourceClip.model_validate(result.data[0]) if result.data else None

    # ------------------------------------------------------------------
    # users / usage
    # ------------------------------------------------------------------

    async def get_user_by_clerk_id(self, clerk_user_id: str) -> Optional[AuthUser]:
        result = await self._run(
            "get_user_by_clerk_id",
            lambda: self.client.table("users")
            .select("id, clerk_user_id, email")
            .eq("clerk_user_id", clerk_user_id)
            .limit(1)
            .execute(),
        )
        return AuthUser.model_validate(result.data[0]) if result.data else None

    async def get_usage(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = await self._run(
            "get_usage",
            lambda: self.client.table("user_usage")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        return result.data[0] if result.data else None

    async def increment_usage(self, user_id: str, field: str):
        """user_usage 의 카운터 컬럼을 RPC 로 원자적으로 +1"""
        await self._run(
            "increment_usage",
            lambda: self.client.rpc(
                "increment_user_usage",
                {"p_user_id": user_id, "p_field_to_increment": field},
            ).execute(),
        )

    async def get_editorial_profile(self, user_id: str) -> Optional[EditorialProfile]:
        result = await self._run(
            "get_editorial_profile",
            lambda: self.client.table("editorial_profiles")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        return EditorialProfile.model_validate(result.data[0]) if result.data else None

    # ------------------------------------------------------------------
    # script_drafts
    # ------------------------------------------------------------------

    async def create_draft(self, draft: Dict[str, Any]) -> ScriptDraft:
        result = await self._run(
            "create_draft", lambda: self.client.table("script_drafts").insert(draft).execute()
        )
        if not result.data:
            raise DatabaseError("Failed to create script draft")
        return ScriptDraft.model_validate(result.data[0])

    async def update_draft(self, draft_id: str, user_id: str, updates: Dict[str, Any]) -> Optional[ScriptDraft]:
        updates = dict(updates, updated_at=utcnow_iso())
        result = await self._run(
            "update_draft",
            lambda: self.client.table("script_drafts")
            .update(updates)
            .eq("id", draft_id)
            .eq("user_id", user_id)
            .execute(),
        )
        return ScriptDraft.model_validate(result.data[0]) if result.data else None

    async def get_draft(self, draft_id: str, user_id: str) -> Optional[ScriptDraft]:
        result = await self._run(
            "get_draft",
            lambda: self.client.table("script_drafts")
            .select("*")
            .eq("id", draft_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        return ScriptDraft.model_validate(result.data[0]) if result.data else None

    async def list_drafts(self, user_id: str, limit: int = 50) -> List[ScriptDraft]:
        result = await self._run(
            "list_drafts",
            lambda: self.client.table("script_drafts")
            .select("*")
            .eq("user_id", user_id)
            .order("updated_at", desc=True)
            .limit(limit)
            .execute(),
        )
        return [ScriptDraft.model_validate(r) for r in result.data or []]

    async def delete_draft(self, draft_id: str, user_id: str) -> bool:
        result = await self._run(
            "delete_draft",
            lambda: self.client.table("script_drafts")
            .delete()
            .eq("id", draft_id)
            .eq("user_id", user_id)
            .execute(),
        )
        return bool(result.data)

    # ------------------------------------------------------------------
    # logs / training data
    # ------------------------------------------------------------------

    async def log_activity(self, user_id: Optional[str], action: str, details: Dict[str, Any]):
        row = {"user_id": user_id, "action": action, "details": details, "created_at": utcnow_iso()}
        await self._run("log_activity", lambda: self.client.table("logs").insert(row).execute())

    async def save_training_data(self, row: Dict[str, Any]):
        await self._run(
            "save_training_data", lambda: self.client.table("training_data").insert(row).execute()
        )
