"""
자막 프리셋 / Creatomate 텍스트 요소 속성 변환
"""

from typing import Any, Dict, List, Optional

from schemas import CaptionConfig

TRANSCRIPT_EFFECTS = ["karaoke", "highlight", "fade", "bounce", "slide", "enlarge"]

DEFAULT_TRANSCRIPT_COLOR = "#04f827"
DEFAULT_TRANSCRIPT_EFFECT = "karaoke"

PLACEMENT_Y_ALIGNMENT = {
    "top": "10%",
    "center": "50%",
    "bottom": "90%",
}

# 모든 프리셋이 공유하는 기본 레이아웃
BASE_CAPTION_PROPERTIES: Dict[str, Any] = {
    "width": "90%",
    "height": "100%",
    "font_size": "8 vmin",
    "fill_color": "#ffffff",
    "font_family": "Montserrat",
    "font_weight": "700",
    "x_alignment": "50%",
    "stroke_color": "#333333",
    "stroke_width": "1.05 vmin",
    "background_color": "rgba(216,216,216,0)",
    "background_x_padding": "26%",
    "background_y_padding": "7%",
    "transcript_placement": "animate",
    "background_border_radius": "28%",
    "transcript_maximum_length": 25,
}

# (preset id, 표시명, 효과, 강조색)
_PRESET_TABLE = [
    ("karaoke", "Karaoke", "karaoke", "#04f827"),
    ("beasty", "Beasty", "highlight", "#FFFD03"),
    ("highlight-yellow", "Highlight Yellow", "highlight", "#FFE500"),
    ("fade", "Fade", "fade", "#ffffff"),
    ("bounce", "Bounce", "bounce", "#ff4081"),
    ("slide", "Slide", "slide", "#00bcd4"),
    ("enlarge", "Enlarge", "enlarge", "#9c27b0"),
]

CAPTION_PRESETS: Dict[str, Dict[str, Any]] = {
    preset_id: {
        "id": preset_id,
        "name": name,
        "transcript_effect": effect,
        "transcript_color": color,
        "placement": "bottom",
    }
    for preset_id, name, effect, color in _PRESET_TABLE
}

# 템플릿에 자막을 적용할 때 덮어쓰면 안 되는 속성
PRESERVED_ELEMENT_KEYS = ("id", "name", "type", "track", "time", "duration", "transcript_source")

# 구 포맷 속성 (Creatomate 자막 렌더링과 충돌)
CONFLICTING_KEYS = (
    "x",
    "y",
    "highlight_color",
    "shadow_x",
    "shadow_y",
    "shadow_blur",
    "shadow_color",
    "text_transform",
)


def get_presets() -> List[Dict[str, Any]]:
    return list(CAPTION_PRESETS.values())


def is_valid_transcript_effect(effect: str) -> bool:
    return effect in TRANSCRIPT_EFFECTS


def caption_properties(config: Optional[CaptionConfig]) -> Dict[str, Any]:
    """
    자막 설정을 Creatomate text 요소 속성으로 변환.

    Args:
        config: 사용자 자막 설정. None 이면 karaoke 기본값

    Returns:
        text 요소에 덮어쓸 속성. 자막 비활성화면 빈 dict
    """
    if config is None:
        props = dict(BASE_CAPTION_PROPERTIES)
        props.update(
            y_alignment=PLACEMENT_Y_ALIGNMENT["bottom"],
            transcript_color=DEFAULT_TRANSCRIPT_COLOR,
            transcript_effect=DEFAULT_TRANSCRIPT_EFFECT,
        )
        return props

    if not config.enabled:
        return {}

    preset = CAPTION_PRESETS.get(config.preset_id or "", {})
    effect = config.transcript_effect.value if config.transcript_effect else None

    props = dict(BASE_CAPTION_PROPERTIES)
    props.update(
        y_alignment=PLACEMENT_Y_ALIGNMENT.get(config.placement, PLACEMENT_Y_ALIGNMENT["bottom"]),
        transcript_color=config.transcript_color
        or preset.get("transcript_color")
        or DEFAULT_TRANSCRIPT_COLOR,
        transcript_effect=effect or preset.get("transcript_effect") or DEFAULT_TRANSCRIPT_EFFECT,
    )
    return props


def _is_subtitle(element: Dict[str, Any]) -> bool:
    return element.get("type") == "text" and "subtitle" in (element.get("name") or "").lower()


def _map_scene_elements(template: Dict[str, Any], fn) -> Dict[str, Any]:
    """각 composition(씬)의 하위 요소 목록에 fn 적용한 새 템플릿"""
    updated = dict(template)
    scenes = []
    for scene in template.get("elements", []):
        scene = dict(scene)
        if isinstance(scene.get("elements"), list):
            scene["elements"] = fn(scene["elements"])
        scenes.append(scene)
    updated["elements"] = scenes
    return updated


def apply_captions(template: Dict[str, Any], config: Optional[CaptionConfig]) -> Dict[str, Any]:
    """
    템플릿 자막 요소에 설정 적용.

    - config 없음: karaoke 기본값 적용
    - enabled=False: subtitle 텍스트 요소 제거
    - 그 외: 자막 속성 적용 (id, name, track, time, transcript_source 등은 유지)
    """
    if config is not None and not config.enabled:
        return _map_scene_elements(
            template, lambda elements: [e for e in elements if not _is_subtitle(e)]
        )

    props = caption_properties(config)

    def _apply(elements):
        result = []
        for element in elements:
            if _is_subtitle(element):
                preserved = {k: element.get(k) for k in PRESERVED_ELEMENT_KEYS if k in element}
                element = {k: v for k, v in element.items() if k not in CONFLICTING_KEYS}
                element.update(props)
                element.update(preserved)
            result.append(element)
        return result

    return _map_scene_elements(template, _apply)
