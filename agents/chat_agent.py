"""
Script Chat: 대화형 스크립트 초안 작성

사용자 메시지 → GuardAgent 검사 → LLM 응답 → [SCRIPT_START]/[SCRIPT_END]
블록에서 스크립트 추출 → script_drafts 갱신
"""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List

from config import get_llm_config
from schemas import ChatMessage, ScriptChatRequest, ScriptChatResponse, ScriptDraft
from utils.constants import DRAFT_SECONDS_PER_WORD, DRAFT_TITLE_WORDS, LANGUAGE_NAMES
from utils.errors import ContractError, GenerationError, NotFoundError, RequestValidationError
from utils.llm_utils import extract_script_block, strip_script_block
from utils.logger import get_logger
from utils.prompt_bank import fill_prompt_template

logger = get_logger("chat_agent")

HISTORY_LIMIT = 10


def script_stats(script: str) -> Dict[str, Any]:
    """단어 수 / 예상 길이 / 제목"""
    words = [w for w in script.split() if w]
    first_line_words = (script.strip().split("\n")[0] if script.strip() else "").split()
    title = " ".join(first_line_words[:DRAFT_TITLE_WORDS])
    if len(first_line_words) > DRAFT_TITLE_WORDS:
        title += "..."
    return {
        "word_count": len(words),
        "estimated_duration": round(len(words) * DRAFT_SECONDS_PER_WORD, 1),
        "title": title or "Untitled Script",
    }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScriptChatService:
    def __init__(self, repo, llm, guard):
        self.repo = repo
        self.llm = llm
        self.guard = guard
        self.model = get_llm_config()["chat_model"]

    async def _check_message(self, message: str):
        verdict = await self.guard.validate(message)
        if not verdict.is_safe or not verdict.is_on_topic:
            raise RequestValidationError(
                verdict.reason or "Message rejected", code="MESSAGE_REJECTED"
            )

    async def _get_or_create_draft(self, user_id: str, request: ScriptChatRequest) -> ScriptDraft:
        if request.script_id:
            draft = await self.repo.get_draft(request.script_id, user_id)
            if draft is None:
                raise NotFoundError("Script draft not found")
            return draft
        return await self.repo.create_draft(
            {
                "user_id": user_id,
                "title": "Untitled Script",
                "status": "draft",
                "current_script": request.current_script or "",
                "messages": [],
                "output_language": request.output_language,
                "editorial_profile_id": request.editorial_profile_id,
                "word_count": 0,
                "estimated_duration": 0,
            }
        )

    async def _build_prompt(self, user_id: str, draft: ScriptDraft, request: ScriptChatRequest):
        profile = await self.repo.get_editorial_profile(user_id)
        profile_text = ""
        if profile is not None:
            profile_text = (
                f"Editorial profile: persona '{profile.persona_description}', tone "
                f"'{profile.tone_of_voice}', audience '{profile.audience}', notes '{profile.style_notes}'."
            )
        filled = fill_prompt_template(
            "script-chat",
            {
                "outputLanguage": LANGUAGE_NAMES.get(request.output_language, request.output_language),
                "editorialProfile": profile_text,
                "currentScript": request.current_script or draft.current_script or "(empty)",
                "message": request.message,
            },
        )
        if filled is None:
            raise ContractError("Script chat prompt not found")
        history = [
            {"role": m.role, "content": m.content} for m in draft.messages[-HISTORY_LIMIT:]
        ]
        return filled, history

    async def _save_turn(
        self, user_id: str, draft: ScriptDraft, request: ScriptChatRequest, reply: str
    ) -> ScriptDraft:
        script = extract_script_block(reply) or request.current_script or draft.current_script
        messages: List[Dict[str, Any]] = [m.model_dump() for m in draft.messages]
        messages.append(ChatMessage(role="user", content=request.message, timestamp=_now()).model_dump())
        messages.append(ChatMessage(role="assistant", content=reply, timestamp=_now()).model_dump())

        updates = {"messages": messages, "current_script": script}
        if script:
            updates.update(script_stats(script))
        updated = await self.repo.update_draft(draft.id, user_id, updates)
        if updated is None:
            raise NotFoundError("Script draft not found")
        return updated

    async def handle_chat(self, user_id: str, request: ScriptChatRequest) -> ScriptChatResponse:
        await self._check_message(request.message)
        draft = await self._get_or_create_draft(user_id, request)
        filled, history = await self._build_prompt(user_id, draft, request)

        reply = await self.llm.complete_text(
            filled["system"], filled["user"], model=self.model, history=history
        )
        updated = await self._save_turn(user_id, draft, request, reply)
        return ScriptChatResponse(
            script_id=updated.id,
            message=strip_script_block(reply) or reply,
            current_script=updated.current_script,
            script_draft=updated,
        )

    async def stream_chat(self, user_id: str, request: ScriptChatRequest) -> AsyncIterator[Dict[str, Any]]:
        """
        SSE 이벤트 스트림.

        Yields:
            message_start → content_delta* → message_complete, 실패 시 error
        """
        try:
            await self._check_message(request.message)
            draft = await self._get_or_create_draft(user_id, request)
            filled, history = await self._build_prompt(user_id, draft, request)

            yield {"type": "message_start", "scriptId": draft.id}
            chunks = []
            async for delta in self.llm.stream_text(
                filled["system"], filled["user"], model=self.model, history=history
            ):
                chunks.append(delta)
                yield {"type": "content_delta", "content": delta}

            reply = "".join(chunks)
            updated = await self._save_turn(user_id, draft, request, reply)
            yield {
                "type": "message_complete",
                "scriptId": updated.id,
                "currentScript": updated.current_script,
                "metadata": {
                    "wordCount": updated.word_count,
                    "estimatedDuration": updated.estimated_duration,
                    "title": updated.title,
                },
            }
        except GenerationError as e:
            logger.error(f"Streaming chat failed: {e}")
            yield {"type": "error", "error": e.user_message, "code": e.code}

    async def validate_draft(self, user_id: str, draft_id: str) -> ScriptDraft:
        draft = await self.repo.get_draft(draft_id, user_id)
        if draft is None:
            raise NotFoundError("Script draft not found")
        if not draft.current_script.strip():
            raise RequestValidationError("Script is empty", code="EMPTY_SCRIPT")
        updated = await self.repo.update_draft(draft_id, user_id, {"status": "validated"})
        return updated or draft
