"""
Guard Agent: 스크립트 채팅 메시지 안전성/주제 적합성 검사

실패하면 항상 안전하지 않은 것으로 처리합니다.
"""

from config import get_llm_config
from schemas import GuardVerdict
from utils.constants import CHAT_MESSAGE_MAX_LENGTH
from utils.errors import GenerationError
from utils.logger import get_logger
from utils.prompt_bank import fill_prompt_template

logger = get_logger("guard_agent")


class GuardAgent:
    def __init__(self, llm):
        self.llm = llm
        self.model = get_llm_config()["guard_model"]

    async def validate(self, message: str) -> GuardVerdict:
        if not message or not message.strip():
            return GuardVerdict(is_safe=False, is_on_topic=False, reason="Empty message")
        if len(message) >= CHAT_MESSAGE_MAX_LENGTH:
            return GuardVerdict(
                is_safe=False,
                is_on_topic=False,
                reason=f"Message too long (max {CHAT_MESSAGE_MAX_LENGTH} characters)",
            )

        filled = fill_prompt_template("guard-agent", {"message": message})
        if filled is None:
            logger.error("Guard prompt not found")
            return GuardVerdict(is_safe=False, is_on_topic=False, reason="Guard unavailable")

        try:
            verdict = await self.llm.complete_structured(
                filled["system"], filled["user"], GuardVerdict, model=self.model, temperature=0
            )
        except GenerationError as e:
            logger.error(f"Guard check failed: {e}")
            return GuardVerdict(
                is_safe=False, is_on_topic=False, reason="Unable to validate message"
            )

        if not verdict.is_safe or not verdict.is_on_topic:
            logger.info(f"Message rejected by guard: {verdict.reason}")
        return verdict
