"""
Scene Planner: 스크립트를 씬으로 나누고 각 씬에 원본 클립을 배정
"""

from typing import Any, Dict, List

from config import get_llm_config
from schemas import ScenePlan, SourceClip
from utils.errors import ContractError
from utils.logger import get_logger
from utils.prompt_bank import fill_prompt_template

logger = get_logger("scene_planner")

PLANNER_PROMPT_ID = "video-scene-planner-v4"


def clips_for_prompt(clips: List[SourceClip]) -> List[Dict[str, Any]]:
    """LLM 프롬프트에 넣을 클립 요약 (길이와 분석 구간 포함)"""
    result = []
    for clip in clips:
        entry = {
            "id": clip.id,
            "url": clip.upload_url,
            "title": clip.title,
            "description": clip.description,
            "tags": clip.tags,
            "duration_seconds": clip.duration_seconds,
        }
        segments = (clip.analysis_data or {}).get("segments")
        if segments:
            entry["segments"] = segments
        result.append(entry)
    return result


class ScenePlanner:
    def __init__(self, llm):
        self.llm = llm
        self.model = get_llm_config()["planner_model"]

    async def plan(self, script: str, clips: List[SourceClip]) -> ScenePlan:
        filled = fill_prompt_template(
            PLANNER_PROMPT_ID,
            {"script": script, "selectedVideos": clips_for_prompt(clips)},
        )
        if filled is None:
            raise ContractError("Scene planner prompt not found")

        plan = await self.llm.complete_structured(
            filled["system"], filled["user"], ScenePlan, model=self.model
        )
        logger.info(f"Scene plan created with {len(plan.scenes)} scenes")
        return plan
