"""
Unit tests for scene duration validation.
"""
import sys
import os
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schemas import ScenePlan
from validators import (
    count_words,
    estimate_narration_seconds,
    find_duration_violations,
    format_violation_feedback,
)
from conftest import make_clip, scene


class TestEstimate:

    def test_count_words_ignores_extra_whitespace(self):
        assert count_words("  one   two\nthree ") == 3
        assert count_words("") == 0

    def test_estimate_uses_words_to_seconds(self):
        assert estimate_narration_seconds("a b c d e f g h i j") == pytest.approx(7.0)


class TestViolations:

    def test_scene_within_margin_passes(self):
        clip = make_clip(duration=10.0)
        # 13 words -> 9.1s, allowed 9.5s
        plan = ScenePlan.model_validate({"scenes": [scene(1, 13, clip)]})
        assert find_duration_violations(plan, [clip]) == []

    def test_scene_over_margin_is_reported(self):
        clip = make_clip(duration=10.0)
        # 14 words -> 9.8s, allowed 9.5s
        plan = ScenePlan.model_validate({"scenes": [scene(1, 14, clip)]})
        violations = find_duration_violations(plan, [clip])
        assert len(violations) == 1
        v = violations[0]
        assert v.scene_index == 0
        assert v.estimated_duration == pytest.approx(9.8)
        assert v.clip_duration == 10.0
        assert v.overage_seconds == pytest.approx(0.3)

    def test_trim_duration_overrides_clip_length(self):
        clip = make_clip(duration=30.0)
        plan = ScenePlan.model_validate(
            {"scenes": [scene(1, 10, clip, trim_start=0, trim_duration=5)]}
        )
        violations = find_duration_violations(plan, [clip])
        assert [v.clip_duration for v in violations] == [5.0]

    def test_unknown_duration_is_skipped(self):
        clip = make_clip(duration=None)
        plan = ScenePlan.model_validate({"scenes": [scene(1, 100, clip)]})
        assert find_duration_violations(plan, [clip]) == []

    @pytest.mark.parametrize("duration", [0.0, -1.0])
    def test_non_positive_duration_is_skipped(self, duration):
        clip = make_clip(duration=duration)
        plan = ScenePlan.model_validate({"scenes": [scene(1, 100, clip)]})
        assert find_duration_violations(plan, [clip]) == []

    def test_clip_not_in_known_clips_is_skipped(self):
        known = make_clip("clip-1", duration=1.0)
        stranger = make_clip("clip-404", duration=1.0)
        plan = ScenePlan.model_validate({"scenes": [scene(1, 100, stranger)]})
        assert find_duration_violations(plan, [known]) == []

    def test_half_second_clip_with_ten_words(self):
        clip = make_clip(duration=0.5)
        plan = ScenePlan.model_validate({"scenes": [scene(1, 10, clip)]})
        violations = find_duration_violations(plan, [clip])
        assert len(violations) == 1
        assert violations[0].estimated_duration == pytest.approx(7.0)
        assert violations[0].overage_seconds == pytest.approx(6.525)

    def test_only_violating_scenes_in_order(self):
        short = make_clip("short", duration=2.0)
        long = make_clip("long", duration=60.0)
        plan = ScenePlan.model_validate(
            {"scenes": [scene(1, 10, long), scene(2, 10, short), scene(3, 10, short)]}
        )
        assert [v.scene_index for v in find_duration_violations(plan, [short, long])] == [1, 2]


class TestFeedback:

    def test_feedback_lines(self):
        clip = make_clip(duration=10.0)
        plan = ScenePlan.model_validate({"scenes": [scene(1, 20, clip)]})
        feedback = format_violation_feedback(find_duration_violations(plan, [clip]))
        assert feedback == "Scene 1: Text 14.0s exceeds video duration 10.0s by 4.5s"
