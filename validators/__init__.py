"""
ClipScript Validators

- request_rules: 영상 생성 요청 본문 검증
- scene_duration: 나레이션 길이 vs 클립 길이 검증
- url_repair: 클립 참조 정규화
- template_structure: 렌더 템플릿 구조 검증 및 보정
"""

from .request_rules import validate_request, is_valid_clip
from .scene_duration import (
    find_duration_violations,
    format_violation_feedback,
    estimate_narration_seconds,
    count_words,
)
from .url_repair import UrlRepairer
from .template_structure import (
    validate_template_structure,
    fix_audio_text_to_source,
    fix_video_elements,
    enforce_voice_id,
)

__all__ = [
    "validate_request",
    "is_valid_clip",
    "find_duration_violations",
    "format_violation_feedback",
    "estimate_narration_seconds",
    "count_words",
    "UrlRepairer",
    "validate_template_structure",
    "fix_audio_text_to_source",
    "fix_video_elements",
    "enforce_voice_id",
]
