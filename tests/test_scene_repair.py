"""
Unit tests for the scene repair loop.

Tests cover:
1. Early exit when the first plan fits
2. Re-planning with duration feedback until the plan fits
3. Budget exhaustion after the last attempt
4. Missing repair prompt
5. URL repair pass after the duration loop
"""
import sys
import os
import asyncio
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import agents.scene_repair as scene_repair
from agents import SceneRepairLoop
from schemas import ScenePlan
from utils.errors import ContractError, RepairBudgetExhaustedError
from conftest import FakeLLM, make_clip, scene


CLIP = make_clip(duration=10.0)
FITS = {"scenes": [scene(1, 5, CLIP), scene(2, 6, CLIP)]}
TOO_LONG = {"scenes": [scene(1, 30, CLIP), scene(2, 6, CLIP)]}


def _run(loop, plan, script="script"):
    return asyncio.run(loop.run(ScenePlan.model_validate(plan), script, "req-test"))


class TestRepairLoop:

    def test_valid_plan_needs_no_llm(self):
        llm = FakeLLM()
        loop = SceneRepairLoop(llm, [CLIP])
        result = _run(loop, FITS)
        assert len(result.scenes) == 2
        assert loop.state.attempt == 1
        assert loop.state.repair_calls == 0
        assert llm.calls == []

    def test_repair_until_valid(self):
        llm = FakeLLM(structured_responses=[TOO_LONG, FITS])
        loop = SceneRepairLoop(llm, [CLIP], max_attempts=3)
        result = _run(loop, TOO_LONG)
        assert [s.script_text for s in result.scenes] == [
            s["script_text"] for s in FITS["scenes"]
        ]
        assert loop.state.attempt == 3
        assert loop.state.repair_calls == 2
        # 피드백이 재계획 프롬프트에 포함됨
        assert "Scene 1: Text 21.0s exceeds video duration 10.0s" in llm.calls[0]["user"]

    def test_budget_exhausted(self):
        llm = FakeLLM(structured_responses=[TOO_LONG, TOO_LONG])
        loop = SceneRepairLoop(llm, [CLIP], max_attempts=3)
        with pytest.raises(RepairBudgetExhaustedError) as exc:
            _run(loop, TOO_LONG)
        assert exc.value.attempts == 3
        assert str(exc.value) == (
            "Scene duration validation failed after 3 attempts. 1 scenes exceed video duration."
        )
        assert len(llm.calls) == 2

    def test_half_second_clip_exhausts_budget(self):
        short = make_clip(duration=0.5)
        ten_words = {"scenes": [scene(1, 10, short)]}
        llm = FakeLLM(structured_responses=[ten_words, ten_words])
        loop = SceneRepairLoop(llm, [short], max_attempts=3)
        with pytest.raises(RepairBudgetExhaustedError) as exc:
            _run(loop, ten_words)
        assert exc.value.attempts == 3
        assert exc.value.violation_count == 1
        assert "3 attempts" in str(exc.value)

    def test_single_attempt_budget(self):
        llm = FakeLLM()
        loop = SceneRepairLoop(llm, [CLIP], max_attempts=1)
        with pytest.raises(RepairBudgetExhaustedError):
            _run(loop, TOO_LONG)
        assert llm.calls == []

    def test_missing_repair_prompt(self, monkeypatch):
        monkeypatch.setattr(scene_repair, "fill_prompt_template", lambda *args: None)
        loop = SceneRepairLoop(FakeLLM(), [CLIP])
        with pytest.raises(ContractError, match="v5 prompt not found"):
            _run(loop, TOO_LONG)

    def test_malformed_repair_response(self):
        llm = FakeLLM(structured_responses=['{"scenes": "nope"}'])
        loop = SceneRepairLoop(llm, [CLIP])
        with pytest.raises(ContractError):
            _run(loop, TOO_LONG)

    def test_urls_repaired_after_durations(self):
        plan = {"scenes": [scene(1, 5, CLIP, url="https://stale.example.com/x.mp4")]}
        result = _run(SceneRepairLoop(FakeLLM(), [CLIP]), plan)
        assert result.scenes[0].video_asset.url == CLIP.upload_url
