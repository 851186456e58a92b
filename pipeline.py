"""
ClipScript 영상 생성 파이프라인

요청 접수 후 즉시 queued 응답을 반환하고, 나머지는 백그라운드 태스크에서 실행.

실행 플로우:
1. processing 전환
2. ScriptAgent - 스크립트 생성 + 리뷰, scripts 행 저장            (script_generation 타임아웃)
3. 선택 클립 조회/검증                                            (database 타임아웃)
4. ScenePlanner + SceneRepairLoop - 씬 플랜, 길이 교정, URL 정규화
5. TemplateBuilder - 템플릿 생성, 보정, 구조 검증, URL 재검증     (4~5: template_generation 타임아웃)
6. training_data 저장 (fire-and-forget)
7. Creatomate 렌더 제출                                           (render_submission 타임아웃)
8. completed 기록 (script_id, render_id, script, template)

2~7 중 어디서든 실패하면 failed 기록 + 정리.
렌더 결과(render_status)는 웹훅 또는 상태 조회 시 폴링으로 반영.
"""

import asyncio
import json
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from dotenv import load_dotenv
from pydantic import ValidationError

# .env 파일 로드
load_dotenv()

from config import get_estimated_completion_minutes, get_timeouts
from schemas import (
    GenerationAck,
    GenerationPayload,
    GenerationRequest,
    GenerationResultData,
    RenderCallback,
    RenderMetadata,
    RenderStatus,
    RequestStatus,
    SourceClip,
)
from agents import ScenePlanner, SceneRepairLoop, ScriptAgent, TemplateBuilder
from utils.cleanup import cleanup_on_failure
from utils.constants import ACTION_RENDER_CALLBACK, DEFAULT_VOICE_ID
from utils.error_manager import ErrorManager
from utils.errors import (
    CallbackRejectedError,
    DatabaseError,
    GenerationError,
    NotFoundError,
    StageTimeoutError,
)
from utils.logger import get_logger
from utils.usage import increment_usage
from validators import (
    UrlRepairer,
    enforce_voice_id,
    fix_audio_text_to_source,
    fix_video_elements,
    is_valid_clip,
    validate_template_structure,
)

logger = get_logger("pipeline")

# Creatomate 상태 → render_status
TERMINAL_RENDER_STATUSES = {
    "succeeded": RenderStatus.SUCCEEDED,
    "failed": RenderStatus.FAILED,
}


@dataclass
class GenerationContext:
    """백그라운드 실행 중 단계 간에 전달되는 상태"""
    request_id: str
    user_id: str
    payload: GenerationPayload
    script: Optional[str] = None
    script_id: Optional[str] = None
    clips: List[SourceClip] = field(default_factory=list)
    template: Optional[Dict[str, Any]] = None
    render_id: Optional[str] = None


class VideoGenerationPipeline:
    """
    ClipScript 영상 생성 오케스트레이터

    submit() 은 요청 행만 만들고 반환하며, 실제 생성은 요청당 하나의
    asyncio 태스크에서 실행됩니다. 태스크의 모든 오류는 process() 안에서
    잡혀 failed 상태로 기록됩니다.
    """

    def __init__(
        self,
        repo,
        llm,
        renderer,
        script_agent: ScriptAgent = None,
        planner: ScenePlanner = None,
        template_builder: TemplateBuilder = None,
        timeouts: Optional[Dict[str, float]] = None,
    ):
        """
        Args:
            repo: SupabaseRepository
            llm: LLMClient
            renderer: CreatomateClient
            timeouts: 단계별 타임아웃 (기본: config.get_timeouts())
        """
        self.repo = repo
        self.llm = llm
        self.renderer = renderer
        self.script_agent = script_agent or ScriptAgent(llm)
        self.planner = planner or ScenePlanner(llm)
        self.template_builder = template_builder or TemplateBuilder()
        self.timeouts = dict(get_timeouts(), **(timeouts or {}))
        # 실행 중 태스크 참조 유지 (GC 방지용)
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _with_timeout(self, stage: str, timeout_key: str, coro):
        seconds = self.timeouts[timeout_key]
        try:
            return await asyncio.wait_for(coro, timeout=seconds)
        except asyncio.TimeoutError:
            raise StageTimeoutError(stage, seconds) from None

    async def _db(self, stage: str, coro):
        return await self._with_timeout(stage, "database_operation_sec", coro)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_background(self):
        """실행 중인 백그라운드 태스크 완료 대기 (종료 처리/테스트용)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------

    async def submit(self, user_id: str, payload: GenerationPayload) -> GenerationAck:
        """
        요청 접수.

        Returns:
            GenerationAck (request_id, status=queued, 예상 완료 시각)

        Raises:
            DatabaseError / StageTimeoutError: 요청 행 생성 실패
        """
        request = await self._db(
            "create_request",
            self.repo.create_request(user_id, payload.model_dump(mode="json", by_alias=True)),
        )
        logger.info(f"[{request.id}] Video request queued for user {user_id}")

        self._spawn(self.process(request.id, user_id, payload))

        eta = datetime.now(timezone.utc) + timedelta(minutes=get_estimated_completion_minutes())
        return GenerationAck(
            request_id=request.id,
            status=RequestStatus.QUEUED,
            estimated_completion_time=eta,
        )

    # ------------------------------------------------------------------
    # background processing
    # ------------------------------------------------------------------

    async def process(self, request_id: str, user_id: str, payload: GenerationPayload):
        ctx = GenerationContext(request_id=request_id, user_id=user_id, payload=payload)
        try:
            if not await self._db("mark_processing", self.repo.mark_processing(request_id)):
                logger.warning(f"[{request_id}] Request is no longer queued, skipping")
                return

            await self._with_timeout(
                "script_generation", "script_generation_sec", self._generate_script(ctx)
            )
            await self._store_script(ctx)
            await self._db("load_clips", self._load_clips(ctx))
            await self._with_timeout(
                "template_generation", "template_generation_sec", self._build_template(ctx)
            )

            self._spawn(self._capture_training_data(ctx))

            ctx.render_id = await self._with_timeout(
                "render_submission", "render_submission_sec", self._submit_render(ctx)
            )

            result = GenerationResultData(
                script_id=ctx.script_id,
                render_id=ctx.render_id,
                script=ctx.script,
                template=ctx.template,
            )
            written = await self._db(
                "complete_request",
                self.repo.complete_request(request_id, result.model_dump(), ctx.render_id),
            )
            if written:
                logger.info(f"[{request_id}] Render submitted: {ctx.render_id}")
            else:
                logger.warning(f"[{request_id}] Request already finalized, completion not recorded")

        except GenerationError as e:
            await self._fail(ctx, e)
        except Exception as e:
            logger.error(f"[{request_id}] Unexpected pipeline error\n{traceback.format_exc()}")
            await self._fail(ctx, GenerationError(f"Unexpected error: {e}"))

    async def _fail(self, ctx: GenerationContext, error: GenerationError):
        logger.error(f"[{ctx.request_id}] Video generation failed ({error.code}): {error}")
        ErrorManager.log_exception("VideoGenerationPipeline", error, request_id=ctx.request_id)
        try:
            await self._db("fail_request", self.repo.fail_request(ctx.request_id, str(error)))
        except GenerationError as e:
            logger.critical(f"[{ctx.request_id}] Could not record failure: {e}")
        await cleanup_on_failure(self.repo, ctx.request_id, ctx.user_id, ctx.script_id, str(error))

    async def _generate_script(self, ctx: GenerationContext):
        payload = ctx.payload
        draft = await self.script_agent.generate(
            payload.prompt,
            editorial_profile=payload.editorial_profile,
            system_prompt=payload.system_prompt,
            output_language=payload.output_language,
        )
        ctx.script = await self.script_agent.review(
            draft, payload.editorial_profile, payload.output_language
        )

    async def _store_script(self, ctx: GenerationContext):
        payload = ctx.payload
        ctx.script_id = await self._db(
            "create_script",
            self.repo.create_script(ctx.user_id, payload.prompt, ctx.script, payload.output_language),
        )
        logger.info(f"[{ctx.request_id}] Script stored: {ctx.script_id}")

    async def _load_clips(self, ctx: GenerationContext):
        ids = [c.id for c in ctx.payload.selected_videos]
        stored = await self.repo.get_clips(ctx.user_id, ids)
        clips = [c for c in stored if is_valid_clip(c.model_dump())]

        missing = set(ids) - {c.id for c in clips}
        if missing:
            logger.warning(f"[{ctx.request_id}] Ignoring unavailable videos: {sorted(missing)}")
        if not clips:
            raise NotFoundError("None of the selected videos are available")
        ctx.clips = clips

    async def _build_template(self, ctx: GenerationContext):
        payload = ctx.payload
        plan = await self.planner.plan(ctx.script, ctx.clips)
        plan = await SceneRepairLoop(self.llm, ctx.clips).run(plan, ctx.script, ctx.request_id)

        voice_id = payload.voice_id or DEFAULT_VOICE_ID
        template = self.template_builder.build(plan, voice_id, payload.caption_config)
        template = fix_audio_text_to_source(template)
        template = fix_video_elements(template)
        template, corrections = enforce_voice_id(template, voice_id)
        if corrections:
            logger.warning(f"[{ctx.request_id}] Corrected voice id on {corrections} audio elements")

        validate_template_structure(template)
        ctx.template = UrlRepairer(ctx.clips).repair_template(template)

    async def _submit_render(self, ctx: GenerationContext) -> str:
        metadata = RenderMetadata(
            request_id=ctx.request_id,
            user_id=ctx.user_id,
            script_id=ctx.script_id,
            prompt=ctx.payload.prompt,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        return await self.renderer.submit(ctx.template, metadata.model_dump(by_alias=True))

    async def _capture_training_data(self, ctx: GenerationContext):
        try:
            await self.repo.save_training_data(
                {
                    "user_id": ctx.user_id,
                    "request_id": ctx.request_id,
                    "prompt": ctx.payload.prompt,
                    "script": ctx.script,
                    "template": ctx.template,
                }
            )
        except GenerationError as e:
            logger.warning(f"[{ctx.request_id}] Training data not saved: {e}")

    # ------------------------------------------------------------------
    # render status
    # ------------------------------------------------------------------

    async def apply_render_result(
        self,
        request: GenerationRequest,
        status: str,
        url: Optional[str] = None,
        error: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> bool:
        """
        렌더 종료 상태 반영 (웹훅 / 폴링 공용).

        Returns:
            이번 호출로 pending → 종료 전이가 일어났으면 True
        """
        render_status = TERMINAL_RENDER_STATUSES.get(status)
        if render_status is None:
            logger.info(f"[{request.id}] Render status '{status}' acknowledged, no update")
            return False

        applied = await self.repo.update_render_status(
            request.id,
            render_status,
            render_url=url if render_status == RenderStatus.SUCCEEDED else None,
            render_error=(error or "Render failed") if render_status == RenderStatus.FAILED else None,
            duration_seconds=duration,
        )
        if not applied:
            logger.info(f"[{request.id}] Render result already recorded, ignoring '{status}'")
            return False

        if render_status == RenderStatus.SUCCEEDED:
            await increment_usage(self.repo, request.user_id, "videos_generated")
        logger.info(f"[{request.id}] Render {render_status.value}")
        return True

    async def handle_render_callback(self, callback: RenderCallback) -> Dict[str, Any]:
        """
        Creatomate 웹훅 처리.

        Raises:
            CallbackRejectedError: 메타데이터 오류(400), 요청 없음(404), 사용자 불일치(403)
        """
        metadata = _parse_metadata(callback.metadata)

        request = await self.repo.get_request(metadata.request_id)
        if request is None:
            raise CallbackRejectedError("Video request not found", "REQUEST_NOT_FOUND", 404)
        if request.user_id != metadata.user_id:
            logger.warning(
                f"[{request.id}] Callback user {metadata.user_id} does not own request"
            )
            raise CallbackRejectedError("User ID mismatch", "USER_MISMATCH", 403)

        applied = await self.apply_render_result(
            request, callback.status, callback.url, callback.error, callback.duration
        )

        try:
            await self.repo.log_activity(
                request.user_id,
                ACTION_RENDER_CALLBACK,
                {
                    "request_id": request.id,
                    "render_id": callback.id,
                    "status": callback.status,
                    "applied": applied,
                },
            )
        except DatabaseError as e:
            logger.error(f"[{request.id}] Failed to log render callback: {e}")

        return {"request_id": request.id, "status": callback.status, "applied": applied}

    async def refresh_render_status(self, request: GenerationRequest) -> GenerationRequest:
        """pending 상태면 Creatomate 를 폴링하여 종료 상태 반영"""
        if (
            request.status != RequestStatus.COMPLETED
            or request.render_status != RenderStatus.PENDING
            or not request.render_id
        ):
            return request
        try:
            render = await self.renderer.get_render(request.render_id)
        except GenerationError as e:
            logger.warning(f"[{request.id}] Render status check failed: {e}")
            return request
        if not render:
            return request

        applied = await self.apply_render_result(
            request,
            render.get("status", ""),
            render.get("url"),
            render.get("error_message"),
            render.get("duration"),
        )
        if applied:
            refreshed = await self.repo.get_request(request.id)
            return refreshed or request
        return request


def _parse_metadata(raw) -> RenderMetadata:
    if raw is None or raw == "":
        raise CallbackRejectedError("Missing render metadata", "MISSING_METADATA", 400)
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise CallbackRejectedError("Invalid metadata JSON", "INVALID_METADATA", 400) from None
    if not isinstance(raw, dict):
        raise CallbackRejectedError("Invalid metadata JSON", "INVALID_METADATA", 400)
    if not raw.get("requestId") or not raw.get("userId"):
        raise CallbackRejectedError(
            "Missing requestId or userId in metadata", "MISSING_METADATA", 400
        )
    try:
        return RenderMetadata.model_validate(raw)
    except ValidationError:
        raise CallbackRejectedError(
            "Missing requestId or userId in metadata", "MISSING_METADATA", 400
        ) from None
