"""
영상 생성 요청 검증 규칙

모든 규칙을 끝까지 실행하고 오류를 누적합니다. 잘못된 입력에 대해 예외를
던지지 않으며, 실패 시 전체 오류 목록과 첫 번째 오류를 함께 반환합니다.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config import get_validation_limits
from schemas import FieldError, GenerationPayload, ValidationOutcome

REQUIRED_FIELDS = ("prompt", "selectedVideos", "outputLanguage")

SCHEMA_ERROR_CODES = {
    "selectedVideos": "INVALID_VIDEO",
    "editorialProfile": "INVALID_EDITORIAL_PROFILE",
    "captionConfig": "INVALID_CAPTION_CONFIG",
}


def _is_missing(value: Any) -> bool:
    # 공백 문자열과 빈 배열은 각 필드 규칙에서 보고
    return value is None or value == ""


def _error(field: str, code: str, message: str, value: Any = None) -> FieldError:
    return FieldError(field=field, code=code, message=message, value=value)


def _check_required(body: Dict[str, Any]) -> List[FieldError]:
    errors = []
    for field in REQUIRED_FIELDS:
        if _is_missing(body.get(field)):
            errors.append(_error(field, "REQUIRED_FIELD_MISSING", f"{field} is required"))
    return errors


def _check_text(
    body: Dict[str, Any], field: str, max_length: int, allow_blank: bool = False
) -> List[FieldError]:
    value = body.get(field)
    if _is_missing(value):
        return []
    if not isinstance(value, str):
        return [_error(field, "INVALID_TYPE", f"{field} must be a string", value)]
    if not value.strip() and not allow_blank:
        return [_error(field, "EMPTY_VALUE", f"{field} cannot be empty", value)]
    if len(value) > max_length:
        return [
            _error(
                field,
                "VALUE_TOO_LONG",
                f"{field} must be at most {max_length} characters",
                len(value),
            )
        ]
    return []


def is_valid_clip(clip: Any) -> bool:
    """id, title, upload_url, tags 를 갖춘 클립인지 확인"""
    if not isinstance(clip, dict):
        return False
    return (
        isinstance(clip.get("id"), str)
        and bool(clip.get("id"))
        and isinstance(clip.get("title"), str)
        and bool(clip["title"].strip())
        and isinstance(clip.get("upload_url"), str)
        and isinstance(clip.get("tags"), list)
        and (clip.get("analysis_data") is None or isinstance(clip["analysis_data"], dict))
    )


def _check_videos(body: Dict[str, Any], limits: Dict[str, Any]) -> List[FieldError]:
    if "selectedVideos" not in body or body["selectedVideos"] is None:
        return []
    videos = body["selectedVideos"]
    if not isinstance(videos, list):
        return [_error("selectedVideos", "INVALID_TYPE", "selectedVideos must be an array")]

    errors = []
    if len(videos) < limits["min_videos"]:
        errors.append(
            _error(
                "selectedVideos",
                "TOO_FEW_ITEMS",
                f"At least {limits['min_videos']} video must be selected",
                len(videos),
            )
        )
    elif len(videos) > limits["max_videos"]:
        errors.append(
            _error(
                "selectedVideos",
                "TOO_MANY_ITEMS",
                f"At most {limits['max_videos']} videos can be selected",
                len(videos),
            )
        )

    for i, clip in enumerate(videos):
        if not is_valid_clip(clip):
            errors.append(
                _error(
                    f"selectedVideos[{i}]",
                    "INVALID_VIDEO",
                    "Video must have id, title, upload_url and tags",
                )
            )
    return errors


def _check_editorial_profile(body: Dict[str, Any]) -> List[FieldError]:
    profile = body.get("editorialProfile")
    if profile is None:
        return []
    keys = ("persona_description", "tone_of_voice", "audience", "style_notes")
    if not isinstance(profile, dict) or not all(isinstance(profile.get(k), str) for k in keys):
        return [
            _error(
                "editorialProfile",
                "INVALID_EDITORIAL_PROFILE",
                "Editorial profile must include persona_description, tone_of_voice, audience and style_notes",
            )
        ]
    return []


def _check_caption_config(body: Dict[str, Any], limits: Dict[str, Any]) -> List[FieldError]:
    config = body.get("captionConfig")
    if config is None:
        return []
    valid = (
        isinstance(config, dict)
        and isinstance(config.get("enabled"), bool)
        and config.get("placement", "bottom") in limits["caption_placements"]
    )
    if not valid:
        return [
            _error(
                "captionConfig",
                "INVALID_CAPTION_CONFIG",
                "Caption config must have a boolean 'enabled' and a placement of top, center or bottom",
            )
        ]
    return []


def _check_language(body: Dict[str, Any], limits: Dict[str, Any]) -> List[FieldError]:
    language = body.get("outputLanguage")
    if _is_missing(language):
        return []
    if not isinstance(language, str):
        return [_error("outputLanguage", "INVALID_TYPE", "outputLanguage must be a string", language)]
    supported = limits["supported_languages"]
    if language not in supported:
        return [
            _error(
                "outputLanguage",
                "UNSUPPORTED_LANGUAGE",
                f"Language must be one of: {', '.join(supported)}",
                language,
            )
        ]
    return []


def _check_voice(body: Dict[str, Any]) -> List[FieldError]:
    if body.get("voiceId") is None:
        return []
    voice_id = body["voiceId"]
    if not isinstance(voice_id, str):
        return [_error("voiceId", "INVALID_TYPE", "voiceId must be a string", voice_id)]
    if not voice_id.strip():
        return [_error("voiceId", "EMPTY_VALUE", "voiceId cannot be empty", voice_id)]
    return []


def _schema_errors(exc: ValidationError) -> List[FieldError]:
    """pydantic 오류를 동일한 FieldError 형태로 변환"""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ""
        for part in loc:
            if isinstance(part, int):
                field += f"[{part}]"
            else:
                field += f".{part}" if field else str(part)
        code = SCHEMA_ERROR_CODES.get(loc[0] if loc else None, "INVALID_TYPE")
        errors.append(_error(field or "body", code, err.get("msg", "Invalid value")))
    return errors


def validate_request(body: Any, limits: Optional[Dict[str, Any]] = None) -> ValidationOutcome:
    """
    영상 생성 요청 본문 검증.

    Args:
        body: 요청 JSON (dict 가 아니면 전체가 잘못된 본문으로 처리)
        limits: 검증 한계값 (기본: config.get_validation_limits())

    Returns:
        ValidationOutcome. 성공이면 prompt/systemPrompt 가 trim 된 payload 를 포함
    """
    limits = limits or get_validation_limits()
    if not isinstance(body, dict):
        error = _error("body", "INVALID_TYPE", "Request body must be a JSON object")
        return ValidationOutcome(is_valid=False, errors=[error], first_error=error)

    errors: List[FieldError] = []
    errors += _check_required(body)
    errors += _check_text(body, "prompt", limits["prompt_max_length"])
    errors += _check_text(
        body, "systemPrompt", limits["system_prompt_max_length"], allow_blank=True
    )
    errors += _check_videos(body, limits)
    errors += _check_editorial_profile(body)
    errors += _check_caption_config(body, limits)
    errors += _check_language(body, limits)
    errors += _check_voice(body)

    if not errors:
        data = dict(body)
        data["prompt"] = body["prompt"].strip()
        data["systemPrompt"] = (body.get("systemPrompt") or "").strip()
        try:
            payload = GenerationPayload.model_validate(data)
        except ValidationError as e:
            errors = _schema_errors(e)
        else:
            return ValidationOutcome(is_valid=True, payload=payload)

    return ValidationOutcome(is_valid=False, errors=errors, first_error=errors[0])
