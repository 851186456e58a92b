"""
Unit tests for render template building, structural checks and fixes.
"""
import sys
import os
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agents import TemplateBuilder
from config import get_renderer_config
from schemas import CaptionConfig, ScenePlan
from utils.constants import DEFAULT_VOICE_ID
from utils.errors import TemplateValidationError
from validators import (
    enforce_voice_id,
    fix_audio_text_to_source,
    fix_video_elements,
    validate_template_structure,
)
from conftest import make_clip, scene


def _template(**overrides):
    template = {"output_format": "mp4", "width": 1080, "height": 1920, "elements": []}
    template.update(overrides)
    return template


def _plan(count=2):
    clip = make_clip()
    return ScenePlan.model_validate({"scenes": [scene(i + 1, 5, clip) for i in range(count)]})


class TestStructure:

    def test_valid_template(self):
        assert validate_template_structure(_template())["width"] == 1080

    def test_missing_property(self):
        template = _template()
        del template["elements"]
        with pytest.raises(TemplateValidationError, match="Missing required properties"):
            validate_template_structure(template)

    def test_wrong_format(self):
        with pytest.raises(TemplateValidationError, match="output_format"):
            validate_template_structure(_template(output_format="gif"))

    def test_landscape_rejected(self):
        with pytest.raises(TemplateValidationError) as exc:
            validate_template_structure(_template(width=1920, height=1080))
        assert str(exc.value) == (
            "Invalid template dimensions: 1920x1080. Must be 1080x1920 for vertical video"
        )

    def test_elements_must_be_list(self):
        with pytest.raises(TemplateValidationError):
            validate_template_structure(_template(elements={"type": "video"}))


class TestFixes:

    def _scene_template(self, *children):
        return _template(elements=[{"type": "composition", "elements": list(children)}])

    def test_audio_text_moved_to_source(self):
        template = self._scene_template({"type": "audio", "text": "Hello there"})
        fixed = fix_audio_text_to_source(template)
        audio = fixed["elements"][0]["elements"][0]
        assert audio["source"] == "Hello there"
        assert "text" not in audio
        assert template["elements"][0]["elements"][0]["text"] == "Hello there"

    def test_video_cover_and_no_duration(self):
        template = self._scene_template({"type": "video", "source": "a.mp4", "fit": "contain", "duration": 4})
        video = fix_video_elements(template)["elements"][0]["elements"][0]
        assert video["fit"] == "cover"
        assert "duration" not in video

    def test_voice_id_corrected(self):
        template = self._scene_template(
            {"type": "audio", "source": "x", "provider": "elevenlabs model_id=m voice_id=wrong"},
            {"type": "audio", "source": "y"},
        )
        fixed, corrections = enforce_voice_id(template, "expected")
        providers = [e["provider"] for e in fixed["elements"][0]["elements"]]
        assert corrections == 2
        assert providers[0] == "elevenlabs model_id=m voice_id=expected"
        assert providers[1].endswith("voice_id=expected")

    def test_matching_voice_id_untouched(self):
        template = self._scene_template(
            {"type": "audio", "source": "x", "provider": "elevenlabs voice_id=v1"}
        )
        _, corrections = enforce_voice_id(template, "v1")
        assert corrections == 0


class TestTemplateBuilder:

    def test_one_composition_per_scene(self):
        template = TemplateBuilder().build(_plan(3), voice_id="voice-9")
        validate_template_structure(template)
        assert [e["id"] for e in template["elements"]] == ["scene-1", "scene-2", "scene-3"]

        children = template["elements"][0]["elements"]
        assert [c["type"] for c in children] == ["video", "audio", "text"]
        video, audio, text = children
        assert video["source"] == make_clip().upload_url
        assert audio["source"] == "word word word word word"
        assert audio["provider"].endswith("voice_id=voice-9")
        assert text["transcript_source"] == "voiceover-1"
        assert text["transcript_effect"] == "karaoke"

    def test_default_voice_comes_from_constants(self):
        template = TemplateBuilder().build(_plan(1))
        audio = template["elements"][0]["elements"][1]
        assert audio["provider"].endswith(f"voice_id={DEFAULT_VOICE_ID}")
        assert "default_voice_id" not in get_renderer_config()

    def test_disabled_captions_drop_subtitles(self):
        template = TemplateBuilder().build(_plan(), caption_config=CaptionConfig(enabled=False))
        for composition in template["elements"]:
            assert [c["type"] for c in composition["elements"]] == ["video", "audio"]

    def test_builder_output_passes_fixes_unchanged(self):
        template = TemplateBuilder().build(_plan(), voice_id="voice-9")
        _, corrections = enforce_voice_id(template, "voice-9")
        assert corrections == 0
        assert fix_audio_text_to_source(template) == template
