"""
Scene duration validation.

Narration length is estimated from the word count of each scene's script text
and compared against the clip it plays over. A scene is in violation when the
estimate exceeds the clip duration scaled by the safety margin.
"""

from typing import Dict, Iterable, List, Optional

from schemas import DurationViolation, ScenePlan, SourceClip

WORDS_TO_SECONDS = 0.7
SAFETY_MARGIN = 0.95


def count_words(text: str) -> int:
    return len([w for w in (text or "").split() if w])


def estimate_narration_seconds(text: str, words_to_seconds: float = WORDS_TO_SECONDS) -> float:
    return count_words(text) * words_to_seconds


def _parse_seconds(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def find_duration_violations(
    plan: ScenePlan,
    clips: Iterable[SourceClip],
    words_to_seconds: float = WORDS_TO_SECONDS,
    safety_margin: float = SAFETY_MARGIN,
) -> List[DurationViolation]:
    """
    Return the scenes whose narration would overrun their clip.

    Args:
        plan: Scene plan to check
        clips: Source clips the plan may reference (looked up by id)
        words_to_seconds: Seconds of narration per word
        safety_margin: Fraction of the clip duration narration may use

    Returns:
        Violations in scene order. Scenes whose clip duration cannot be
        resolved, or resolves to zero or less, are skipped.
    """
    durations: Dict[str, Optional[float]] = {c.id: c.duration_seconds for c in clips}
    violations = []

    for index, scene in enumerate(plan.scenes):
        clip_duration = _parse_seconds(scene.video_asset.trim_duration)
        if clip_duration is None:
            clip_duration = durations.get(scene.video_asset.id)
        if clip_duration is None or clip_duration <= 0:
            continue

        estimated = estimate_narration_seconds(scene.script_text, words_to_seconds)
        allowed = clip_duration * safety_margin
        if estimated > allowed:
            violations.append(
                DurationViolation(
                    scene_index=index,
                    estimated_duration=estimated,
                    clip_duration=clip_duration,
                    overage_seconds=estimated - allowed,
                )
            )

    return violations


def format_violation_feedback(violations: List[DurationViolation]) -> str:
    """LLM 재계획 프롬프트에 넣을 피드백 문자열"""
    return "\n".join(
        f"Scene {v.scene_index + 1}: Text {v.estimated_duration:.1f}s exceeds video duration "
        f"{v.clip_duration:.1f}s by {v.overage_seconds:.1f}s"
        for v in violations
    )
