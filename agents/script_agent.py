"""
Script Agent: 프롬프트 → 숏폼 보이스오버 스크립트 생성 및 리뷰

- generate(): hook / insight / punch 구조의 30~60초 스크립트 작성
- review(): 에디토리얼 프로필에 맞춰 다듬기
"""

from typing import Dict, Optional

from config import get_llm_config
from schemas import EditorialProfile, PromptEnhancement
from utils.constants import LANGUAGE_NAMES, SCRIPT_MAX_SECONDS, SCRIPT_MIN_SECONDS
from utils.errors import ContractError
from utils.logger import get_logger
from utils.prompt_bank import fill_prompt_template
from validators.scene_duration import estimate_narration_seconds

logger = get_logger("script_agent")


def _profile_values(profile: Optional[EditorialProfile]) -> Dict[str, str]:
    if profile is None:
        return {
            "persona": "A knowledgeable, friendly creator",
            "tone": "Conversational and direct",
            "audience": "General social media audience",
            "styleNotes": "Short sentences. No jargon.",
            "examples": "",
        }
    return {
        "persona": profile.persona_description,
        "tone": profile.tone_of_voice,
        "audience": profile.audience,
        "styleNotes": profile.style_notes,
        "examples": f"- Examples: {profile.examples}" if profile.examples else "",
    }


class ScriptAgent:
    """
    보이스오버 스크립트 작성 에이전트
    """

    def __init__(self, llm):
        """
        Args:
            llm: LLMClient (complete_text 제공)
        """
        self.llm = llm
        self.config = get_llm_config()

    def _prompt(self, prompt_id: str, values: Dict[str, str]) -> Dict[str, str]:
        filled = fill_prompt_template(prompt_id, values)
        if filled is None:
            raise ContractError(f"Prompt '{prompt_id}' not found")
        return filled

    async def generate(
        self,
        prompt: str,
        editorial_profile: Optional[EditorialProfile] = None,
        system_prompt: str = "",
        output_language: str = "en",
    ) -> str:
        """
        스크립트 초안 생성.

        Args:
            prompt: 사용자 아이디어
            editorial_profile: 브랜드 톤/페르소나 (없으면 기본값)
            system_prompt: 사용자가 추가한 지시문
            output_language: 출력 언어 코드

        Returns:
            보이스오버 스크립트 텍스트
        """
        values = _profile_values(editorial_profile)
        values.update(
            prompt=prompt,
            systemPrompt=system_prompt or "",
            outputLanguage=LANGUAGE_NAMES.get(output_language, output_language),
        )
        filled = self._prompt("script-writer", values)
        script = await self.llm.complete_text(
            filled["system"], filled["user"], model=self.config["script_model"]
        )
        logger.info(f"Script drafted ({len(script.split())} words)")
        return script

    async def review(
        self,
        script: str,
        editorial_profile: Optional[EditorialProfile] = None,
        output_language: str = "en",
    ) -> str:
        values = _profile_values(editorial_profile)
        values.update(
            script=script,
            outputLanguage=LANGUAGE_NAMES.get(output_language, output_language),
        )
        filled = self._prompt("script-reviewer", values)
        reviewed = await self.llm.complete_text(
            filled["system"], filled["user"], model=self.config["review_model"]
        )

        estimated = estimate_narration_seconds(reviewed)
        if not SCRIPT_MIN_SECONDS <= estimated <= SCRIPT_MAX_SECONDS:
            logger.warning(
                f"Reviewed script is ~{estimated:.0f}s, outside "
                f"{SCRIPT_MIN_SECONDS}-{SCRIPT_MAX_SECONDS}s target"
            )
        return reviewed

    async def enhance_prompt(self, prompt: str) -> str:
        """짧은 아이디어를 스크립트 작성용 브리프로 확장"""
        filled = self._prompt("prompt-enhancer", {"prompt": prompt})
        result = await self.llm.complete_structured(
            filled["system"], filled["user"], PromptEnhancement, model=self.config["script_model"]
        )
        return result.enhanced_prompt
