"""
Render template structural checks and post-build fixes.

validate_template_structure() only inspects. The fix_* helpers each return
a corrected copy of the template and leave their input untouched.
"""

import copy
import re
from typing import Any, Dict, Tuple, Union

from schemas import RenderTemplate
from utils.errors import TemplateValidationError
from utils.logger import get_logger

logger = get_logger("template_structure")

REQUIRED_FORMAT = "mp4"
REQUIRED_WIDTH = 1080
REQUIRED_HEIGHT = 1920
REQUIRED_KEYS = ("output_format", "width", "height", "elements")

VOICE_PROVIDER_PREFIX = "elevenlabs model_id=eleven_multilingual_v2"
_VOICE_ID_RE = re.compile(r"voice_id=(\S+)")


def _as_dict(template: Union[RenderTemplate, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(template, RenderTemplate):
        return template.to_wire()
    return template


def validate_template_structure(template: Union[RenderTemplate, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check the fixed output format and vertical canvas.

    Returns:
        The template unchanged (as a dict)

    Raises:
        TemplateValidationError: on a missing key, a non-mp4 format, a canvas
            other than 1080x1920, or elements that is not a list
    """
    data = _as_dict(template)
    if not isinstance(data, dict):
        raise TemplateValidationError("Invalid template: template must be an object")

    missing = [k for k in REQUIRED_KEYS if data.get(k) is None]
    if missing:
        raise TemplateValidationError(
            "Invalid template: Missing required properties",
            context={"missing": missing},
        )

    if data["output_format"] != REQUIRED_FORMAT:
        raise TemplateValidationError(
            f"Invalid template: output_format must be {REQUIRED_FORMAT}",
            context={"output_format": data["output_format"]},
        )

    if data["width"] != REQUIRED_WIDTH or data["height"] != REQUIRED_HEIGHT:
        raise TemplateValidationError(
            f"Invalid template dimensions: {data['width']}x{data['height']}. "
            f"Must be {REQUIRED_WIDTH}x{REQUIRED_HEIGHT} for vertical video",
            context={"width": data["width"], "height": data["height"]},
        )

    if not isinstance(data["elements"], list):
        raise TemplateValidationError("Invalid template: elements must be an array")

    return data


def _scene_children(template: Dict[str, Any]):
    for scene in template.get("elements", []):
        if isinstance(scene, dict) and isinstance(scene.get("elements"), list):
            yield scene["elements"]


def fix_audio_text_to_source(template: Dict[str, Any]) -> Dict[str, Any]:
    """audio 요소의 'text' 키를 'source' 로 옮김"""
    fixed = copy.deepcopy(template)
    for children in _scene_children(fixed):
        for element in children:
            if element.get("type") == "audio" and isinstance(element.get("text"), str):
                element["source"] = element.pop("text")
                logger.debug(f"Patched audio element {element.get('id', '')}: text -> source")
    return fixed


def fix_video_elements(template: Dict[str, Any]) -> Dict[str, Any]:
    """video 요소는 cover 로 채우고, 길이는 보이스오버에 맞추도록 duration 제거"""
    fixed = copy.deepcopy(template)
    for children in _scene_children(fixed):
        for element in children:
            if element.get("type") == "video":
                element["fit"] = "cover"
                element.pop("duration", None)
    return fixed


def enforce_voice_id(template: Dict[str, Any], voice_id: str) -> Tuple[Dict[str, Any], int]:
    """
    audio 요소 provider 의 voice_id 를 기대값으로 교정.

    Returns:
        (교정된 템플릿, 교정한 요소 수)
    """
    fixed = copy.deepcopy(template)
    corrections = 0
    for i, children in enumerate(_scene_children(fixed)):
        for element in children:
            if element.get("type") != "audio":
                continue
            provider = element.get("provider")
            if not provider:
                element["provider"] = f"{VOICE_PROVIDER_PREFIX} voice_id={voice_id}"
                corrections += 1
                continue
            match = _VOICE_ID_RE.search(provider)
            if match is None:
                element["provider"] = f"{provider} voice_id={voice_id}"
                corrections += 1
            elif match.group(1) != voice_id:
                logger.warning(
                    f"Scene {i + 1}: audio element '{element.get('id', 'unnamed')}' "
                    f"uses voice '{match.group(1)}' instead of '{voice_id}'"
                )
                element["provider"] = _VOICE_ID_RE.sub(f"voice_id={voice_id}", provider)
                corrections += 1
    return fixed, corrections
