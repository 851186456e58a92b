"""
Scene Repair Loop

씬 플랜의 나레이션 길이 위반을 LLM 재계획으로 최대 N회 교정한 뒤,
클립 참조(URL/ID)를 한 번 정규화합니다.

- 위반 0건이면 즉시 종료
- 남은 시도가 있으면 위반 피드백으로 재계획
- 마지막 시도에서도 위반이면 RepairBudgetExhaustedError
- 프롬프트 누락 / 스키마 불일치 응답은 ContractError (재시도하지 않음)
"""

from dataclasses import dataclass, field
from typing import List, Optional

from config import get_duration_policy, get_llm_config
from schemas import DurationViolation, ScenePlan, SourceClip
from utils.errors import ContractError, RepairBudgetExhaustedError
from utils.logger import get_logger
from utils.prompt_bank import fill_prompt_template
from validators.scene_duration import find_duration_violations, format_violation_feedback
from validators.url_repair import UrlRepairer
from agents.scene_planner import clips_for_prompt

logger = get_logger("scene_repair")

REPAIR_PROMPT_ID = "video-scene-planner-v5"


@dataclass
class RepairState:
    plan: ScenePlan
    attempt: int = 0
    violations: List[DurationViolation] = field(default_factory=list)
    repair_calls: int = 0


class SceneRepairLoop:
    """
    Duration repair followed by a single URL repair pass.

    Args:
        llm: LLMClient (complete_structured 제공)
        clips: 사용자가 선택한 원본 클립
        max_attempts: 검증 시도 횟수 (기본: settings duration_policy.max_repair_attempts)
    """

    def __init__(self, llm, clips: List[SourceClip], max_attempts: Optional[int] = None):
        policy = get_duration_policy()
        self.llm = llm
        self.clips = list(clips)
        self.max_attempts = max_attempts or policy["max_repair_attempts"]
        self.words_to_seconds = policy["words_to_seconds"]
        self.safety_margin = policy["safety_margin"]
        self.model = get_llm_config()["planner_model"]
        self.state: Optional[RepairState] = None

    def _violations(self, plan: ScenePlan) -> List[DurationViolation]:
        return find_duration_violations(
            plan, self.clips, self.words_to_seconds, self.safety_margin
        )

    async def run(self, plan: ScenePlan, script: str, request_id: str = "") -> ScenePlan:
        state = RepairState(plan=plan)
        self.state = state

        while True:
            state.attempt += 1
            state.violations = self._violations(state.plan)
            if not state.violations:
                logger.info(f"[{request_id}] Scene durations valid on attempt {state.attempt}")
                break

            logger.warning(
                f"[{request_id}] Attempt {state.attempt}/{self.max_attempts}: "
                f"{len(state.violations)} scenes exceed video duration"
            )
            if state.attempt >= self.max_attempts:
                raise RepairBudgetExhaustedError(state.attempt, len(state.violations))

            state.plan = await self._repair(state, script)
            state.repair_calls += 1

        repairer = UrlRepairer(self.clips)
        repaired = repairer.repair_plan(state.plan)
        if repairer.repairs:
            logger.info(f"[{request_id}] Repaired {repairer.repairs} video references")
        state.plan = repaired
        return repaired

    async def _repair(self, state: RepairState, script: str) -> ScenePlan:
        filled = fill_prompt_template(
            REPAIR_PROMPT_ID,
            {
                "script": script,
                "selectedVideos": clips_for_prompt(self.clips),
                "durationViolations": format_violation_feedback(state.violations),
                "scenePlan": state.plan.model_dump(),
            },
        )
        if filled is None:
            raise ContractError("Scene planner v5 prompt not found")

        return await self.llm.complete_structured(
            filled["system"], filled["user"], ScenePlan, model=self.model
        )
