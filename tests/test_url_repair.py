"""
Unit tests for clip reference repair.
"""
import sys
import os
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schemas import ScenePlan
from utils.errors import UrlRepairError
from validators import UrlRepairer
from conftest import make_clip, scene


@pytest.fixture
def clips():
    return [
        make_clip("clip-1", title="Sunrise over the beach"),
        make_clip("clip-2", title="City traffic at night"),
    ]


class TestResolve:

    def test_by_id(self, clips):
        assert UrlRepairer(clips).resolve(clip_id="clip-2").id == "clip-2"

    def test_by_url(self, clips):
        url = clips[0].upload_url
        assert UrlRepairer(clips).resolve(clip_id="made-up", url=url).id == "clip-1"

    def test_by_file_name(self, clips):
        repairer = UrlRepairer(clips)
        assert repairer.resolve(url="https://old-bucket.example.com/x/clip-2.mp4").id == "clip-2"

    def test_by_title_case_insensitive(self, clips):
        assert UrlRepairer(clips).resolve(title="city TRAFFIC at night").id == "clip-2"

    def test_fuzzy_title(self, clips):
        assert UrlRepairer(clips).resolve(title="Sunrise over a beach").id == "clip-1"

    def test_fuzzy_id_typo(self, clips):
        assert UrlRepairer(clips).resolve(clip_id="clip-01").id == "clip-1"

    def test_weak_title_below_threshold(self, clips):
        # "sunset" vs "sunrise over the beach" scores ~43
        assert UrlRepairer(clips).resolve(title="Sunset") is None

    def test_no_match(self, clips):
        assert UrlRepairer(clips).resolve(clip_id="zzz", title="Mountain goats") is None


class TestRepairPlan:

    def test_stale_url_is_rewritten(self, clips):
        plan = ScenePlan.model_validate(
            {"scenes": [scene(1, 5, clips[0], url="https://stale.example.com/old.mp4")]}
        )
        repairer = UrlRepairer(clips)
        repaired = repairer.repair_plan(plan)
        assert repaired.scenes[0].video_asset.url == clips[0].upload_url
        assert repairer.repairs == 1
        # 입력 플랜은 그대로
        assert plan.scenes[0].video_asset.url == "https://stale.example.com/old.mp4"

    def test_canonical_reference_is_not_counted(self, clips):
        plan = ScenePlan.model_validate({"scenes": [scene(1, 5, clips[1])]})
        repairer = UrlRepairer(clips)
        repairer.repair_plan(plan)
        assert repairer.repairs == 0

    def test_unknown_reference_raises(self, clips):
        plan = ScenePlan.model_validate(
            {
                "scenes": [
                    {
                        "scene_number": 1,
                        "script_text": "hello",
                        "video_asset": {"id": "x", "url": "https://nowhere/q.mp4", "title": "Volcano"},
                    }
                ]
            }
        )
        with pytest.raises(UrlRepairError):
            UrlRepairer(clips).repair_plan(plan)

    def test_invalid_trim_raises(self, clips):
        plan = ScenePlan.model_validate(
            {"scenes": [scene(1, 5, clips[0], trim_start=-1, trim_duration=3)]}
        )
        with pytest.raises(UrlRepairError):
            UrlRepairer(clips).repair_plan(plan)


class TestRepairTemplate:

    def test_nested_video_source_repaired(self, clips):
        template = {
            "output_format": "mp4",
            "width": 1080,
            "height": 1920,
            "elements": [
                {
                    "type": "composition",
                    "elements": [
                        {"type": "video", "source": "https://cdn.old/clip-1.mp4"},
                        {"type": "audio", "source": "narration"},
                    ],
                }
            ],
        }
        repaired = UrlRepairer(clips).repair_template(template)
        assert repaired["elements"][0]["elements"][0]["source"] == clips[0].upload_url
        assert template["elements"][0]["elements"][0]["source"] == "https://cdn.old/clip-1.mp4"

    def test_unmatched_source_raises(self, clips):
        template = {"elements": [{"type": "video", "source": "https://cdn.old/unknown.mp4"}]}
        with pytest.raises(UrlRepairError):
            UrlRepairer(clips).repair_template(template)
