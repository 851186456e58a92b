"""
Template Builder: 씬 플랜 → Creatomate 렌더 템플릿

씬마다 composition 하나를 만들고 그 안에
video(음소거) + audio(ElevenLabs 보이스오버) + text(자막) 3개 요소를 배치합니다.
"""

from typing import Any, Dict, Optional

from schemas import (
    AudioElement,
    CaptionConfig,
    CompositionElement,
    RenderTemplate,
    ScenePlan,
    TextElement,
    VideoElement,
)
from utils.caption_presets import apply_captions
from utils.constants import (
    DEFAULT_VOICE_ID,
    OUTPUT_FORMAT,
    OUTPUT_HEIGHT,
    OUTPUT_WIDTH,
    VOICE_MODEL_ID,
)
from utils.logger import get_logger

logger = get_logger("template_builder")


def _seconds(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def voice_provider(voice_id: str) -> str:
    return f"elevenlabs model_id={VOICE_MODEL_ID} voice_id={voice_id}"


class TemplateBuilder:
    def build(
        self,
        plan: ScenePlan,
        voice_id: Optional[str] = None,
        caption_config: Optional[CaptionConfig] = None,
    ) -> Dict[str, Any]:
        """
        렌더 템플릿 생성.

        Args:
            plan: URL 정규화까지 끝난 씬 플랜
            voice_id: ElevenLabs voice id (기본: DEFAULT_VOICE_ID)
            caption_config: 자막 설정 (None 이면 karaoke 기본값)

        Returns:
            Creatomate source JSON (dict)
        """
        voice_id = voice_id or DEFAULT_VOICE_ID
        scenes = []
        for scene in plan.scenes:
            n = scene.scene_number
            asset = scene.video_asset
            voice_element_id = f"voiceover-{n}"
            scenes.append(
                CompositionElement(
                    id=f"scene-{n}",
                    name=f"Scene-{n}",
                    track=1,
                    elements=[
                        VideoElement(
                            id=f"video-{n}",
                            name=f"Video-{n}",
                            track=1,
                            source=asset.url,
                            trim_start=_seconds(asset.trim_start),
                            trim_duration=_seconds(asset.trim_duration),
                        ),
                        AudioElement(
                            id=voice_element_id,
                            name=f"Voiceover-{n}",
                            track=2,
                            source=scene.script_text,
                            provider=voice_provider(voice_id),
                        ),
                        TextElement(
                            id=f"subtitle-{n}",
                            name=f"Subtitle-{n}",
                            track=3,
                            transcript_source=voice_element_id,
                        ),
                    ],
                )
            )

        template = RenderTemplate(
            output_format=OUTPUT_FORMAT,
            width=OUTPUT_WIDTH,
            height=OUTPUT_HEIGHT,
            elements=scenes,
        ).to_wire()
        logger.info(f"Template built with {len(scenes)} scene compositions")
        return apply_captions(template, caption_config)
