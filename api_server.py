"""
ClipScript FastAPI Server

영상 생성 요청 접수, 상태 조회, Creatomate 웹훅, 스크립트 채팅, 원본 클립 관리 API
"""

import os
import json
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()

from typing import Optional, Dict, Any, List

from fastapi import FastAPI, Depends, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from schemas import (
    AuthUser,
    GenerationRequest,
    RenderCallback,
    RequestStatus,
    ScriptChatRequest,
)
from agents import GuardAgent, ScriptAgent, ScriptChatService
from pipeline import VideoGenerationPipeline
from utils.auth import ClerkAuthService
from utils.cleanup import start_cleanup_scheduler
from utils.database import SupabaseRepository
from utils.error_manager import ErrorManager
from utils.errors import GenerationError, NotFoundError
from utils.llm_client import LLMClient
from utils.logger import get_logger
from utils.renderer import CreatomateClient
from utils.usage import check_usage_limit, increment_usage
from validators import validate_request

logger = get_logger("api")

API_VERSION = "1.0"


# ============================================================================
# 의존성 (테스트에서 app.dependency_overrides 로 교체)
# ============================================================================

_services: Dict[str, Any] = {}


def get_repository() -> SupabaseRepository:
    if "repo" not in _services:
        _services["repo"] = SupabaseRepository()
    return _services["repo"]


def get_llm() -> LLMClient:
    if "llm" not in _services:
        _services["llm"] = LLMClient()
    return _services["llm"]


def get_pipeline(
    repo: SupabaseRepository = Depends(get_repository), llm: LLMClient = Depends(get_llm)
) -> VideoGenerationPipeline:
    if "pipeline" not in _services:
        _services["pipeline"] = VideoGenerationPipeline(repo, llm, CreatomateClient())
    return _services["pipeline"]


def get_chat_service(
    repo: SupabaseRepository = Depends(get_repository), llm: LLMClient = Depends(get_llm)
) -> ScriptChatService:
    return ScriptChatService(repo, llm, GuardAgent(llm))


def get_auth_service(repo: SupabaseRepository = Depends(get_repository)) -> ClerkAuthService:
    if "auth" not in _services:
        _services["auth"] = ClerkAuthService(repo)
    return _services["auth"]


async def get_current_user(
    authorization: Optional[str] = Header(None),
    auth: ClerkAuthService = Depends(get_auth_service),
) -> AuthUser:
    result = await auth.verify_user(authorization)
    if not result.ok:
        raise HTTPException(status_code=result.status, detail=result.error)
    return result.user


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if os.getenv("SUPABASE_URL"):
        sweeper = start_cleanup_scheduler(get_repository())
    yield
    if sweeper is not None:
        sweeper.cancel()


# FastAPI 앱 생성
app = FastAPI(title="ClipScript API", version=API_VERSION, lifespan=lifespan)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, **exc.to_dict()})


def _ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


async def _usage_limit_response(repo, user_id: str, resource: str) -> Optional[JSONResponse]:
    """한도 초과면 429 응답, 아니면 None"""
    usage = await check_usage_limit(repo, user_id, resource)
    if not usage["limit_reached"]:
        return None
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": f"Usage limit reached for {resource}.",
            "code": "USAGE_LIMIT_REACHED",
            "details": {"limit": usage["limit"], "used": usage["used"]},
        },
    )


def _validation_failed_response(outcome) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Validation failed",
            "details": outcome.first_error.model_dump(mode="json"),
            "errors": [e.model_dump(mode="json") for e in outcome.errors],
        },
    )


def _status_view(request: GenerationRequest, queue_position: Optional[int] = None) -> Dict[str, Any]:
    view = request.model_dump(mode="json", exclude={"payload"})
    if queue_position is not None:
        view["queue_position"] = queue_position
    return view


# ============================================================================
# Pydantic 모델
# ============================================================================

class SourceClipCreate(BaseModel):
    """원본 클립 등록 요청"""
    title: str = Field(min_length=1)
    description: str = ""
    upload_url: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    duration_seconds: Optional[float] = None


class SourceClipUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class PromptEnhanceRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=2000)


# ============================================================================
# Videos
# ============================================================================

@app.post("/api/videos/generate")
async def generate_video(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
    pipeline: VideoGenerationPipeline = Depends(get_pipeline),
):
    """영상 생성 요청 접수 (백그라운드 실행)"""
    limited = await _usage_limit_response(repo, user.id, "videos_generated")
    if limited is not None:
        return limited

    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid JSON in request body"},
        )

    outcome = validate_request(body)
    if not outcome.is_valid:
        return _validation_failed_response(outcome)

    ack = await pipeline.submit(user.id, outcome.payload)
    return _ok(ack.model_dump(mode="json", by_alias=True), status_code=201)


@app.get("/api/videos/status/{request_id}")
async def get_video_status(
    request_id: str,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
    pipeline: VideoGenerationPipeline = Depends(get_pipeline),
):
    """요청 상태 조회 (렌더 pending 이면 Creatomate 폴링)"""
    video_request = await repo.get_user_request(request_id, user.id)
    if video_request is None:
        raise NotFoundError("Video request not found")

    position = None
    if video_request.status == RequestStatus.QUEUED:
        position = await repo.queue_position(video_request)
    else:
        video_request = await pipeline.refresh_render_status(video_request)
    return _ok(_status_view(video_request, position))


@app.get("/api/videos")
async def list_videos(
    limit: int = 50,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    requests = await repo.list_user_requests(user.id, limit=min(max(limit, 1), 100))
    return _ok([_status_view(r) for r in requests])


# ============================================================================
# Webhooks
# ============================================================================

@app.post("/api/webhooks/creatomate")
async def creatomate_webhook(
    callback: RenderCallback,
    pipeline: VideoGenerationPipeline = Depends(get_pipeline),
):
    """Creatomate 렌더 완료 콜백"""
    logger.info(f"Render callback: {callback.id} status={callback.status}")
    result = await pipeline.handle_render_callback(callback)
    return _ok(result)


# ============================================================================
# Script chat / drafts
# ============================================================================

@app.post("/api/scripts/chat")
async def script_chat(
    req: ScriptChatRequest,
    user: AuthUser = Depends(get_current_user),
    chat: ScriptChatService = Depends(get_chat_service),
):
    response = await chat.handle_chat(user.id, req)
    return _ok(response.model_dump(mode="json"))


@app.post("/api/scripts/chat/stream")
async def script_chat_stream(
    req: ScriptChatRequest,
    user: AuthUser = Depends(get_current_user),
    chat: ScriptChatService = Depends(get_chat_service),
):
    async def event_stream():
        async for event in chat.stream_chat(user.id, req):
            yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.get("/api/scripts")
async def list_scripts(
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    drafts = await repo.list_drafts(user.id)
    return _ok([d.model_dump(mode="json") for d in drafts])


@app.get("/api/scripts/{draft_id}")
async def get_script(
    draft_id: str,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    draft = await repo.get_draft(draft_id, user.id)
    if draft is None:
        raise NotFoundError("Script draft not found")
    return _ok(draft.model_dump(mode="json"))


@app.delete("/api/scripts/{draft_id}")
async def delete_script(
    draft_id: str,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    if not await repo.delete_draft(draft_id, user.id):
        raise NotFoundError("Script draft not found")
    return _ok({"id": draft_id, "deleted": True})


@app.post("/api/scripts/{draft_id}/validate")
async def validate_script(
    draft_id: str,
    user: AuthUser = Depends(get_current_user),
    chat: ScriptChatService = Depends(get_chat_service),
):
    draft = await chat.validate_draft(user.id, draft_id)
    return _ok(draft.model_dump(mode="json"))


@app.post("/api/scripts/{draft_id}/generate-video")
async def generate_video_from_script(
    draft_id: str,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
    pipeline: VideoGenerationPipeline = Depends(get_pipeline),
):
    """검증된 초안을 프롬프트로 하는 일반 생성 요청"""
    draft = await repo.get_draft(draft_id, user.id)
    if draft is None:
        raise NotFoundError("Script draft not found")
    if draft.status != "validated":
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Script must be validated before generating a video"},
        )

    try:
        body = await request.json()
    except json.JSONDecodeError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    body = dict(body, prompt=draft.current_script, outputLanguage=body.get("outputLanguage") or draft.output_language)

    limited = await _usage_limit_response(repo, user.id, "videos_generated")
    if limited is not None:
        return limited

    outcome = validate_request(body)
    if not outcome.is_valid:
        return _validation_failed_response(outcome)

    ack = await pipeline.submit(user.id, outcome.payload)
    await repo.update_draft(draft_id, user.id, {"status": "used"})
    return _ok(ack.model_dump(mode="json", by_alias=True), status_code=201)


# ============================================================================
# Source videos
# ============================================================================

@app.post("/api/source-videos")
async def create_source_video(
    req: SourceClipCreate,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    limited = await _usage_limit_response(repo, user.id, "source_videos")
    if limited is not None:
        return limited
    clip = await repo.create_clip(user.id, req.model_dump())
    await increment_usage(repo, user.id, "source_videos")
    return _ok(clip.model_dump(mode="json"), status_code=201)


@app.get("/api/source-videos")
async def list_source_videos(
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    clips = await repo.list_clips(user.id)
    return _ok([c.model_dump(mode="json") for c in clips])


@app.put("/api/source-videos/{clip_id}")
async def update_source_video(
    clip_id: str,
    req: SourceClipUpdate,
    user: AuthUser = Depends(get_current_user),
    repo: SupabaseRepository = Depends(get_repository),
):
    updates = req.model_dump(exclude_none=True)
    if not updates:
        return JSONResponse(status_code=400, content={"success": False, "error": "No fields to update"})
    clip = await repo.update_clip(user.id, clip_id, updates)
    if clip is None:
        raise NotFoundError("Source video not found")
    return _ok(clip.model_dump(mode="json"))


# ============================================================================
# Prompts / misc
# ============================================================================

@app.post("/api/prompts/enhance")
async def enhance_prompt(
    req: PromptEnhanceRequest,
    user: AuthUser = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    enhanced = await ScriptAgent(llm).enhance_prompt(req.prompt)
    return _ok({"original": req.prompt, "enhanced": enhanced})


@app.get("/api/auth-test")
async def auth_test(user: AuthUser = Depends(get_current_user)):
    return _ok({"user": user.model_dump(mode="json")})


@app.get("/api/errors/recent")
async def recent_errors(limit: int = 20, user: AuthUser = Depends(get_current_user)):
    return _ok(ErrorManager.get_recent_errors(limit=min(max(limit, 1), 100)))


@app.get("/health")
async def health_check():
    """헬스 체크"""
    pipeline = _services.get("pipeline")
    return {
        "status": "ok",
        "version": API_VERSION,
        "active_generations": len(pipeline._tasks) if pipeline else 0,
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    logger.info(f"ClipScript API v{API_VERSION} on http://localhost:{port} (docs: /docs)")
    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )
