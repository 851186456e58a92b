"""
ClipScript Configuration Loader
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

# 기본 설정 디렉토리
CONFIG_DIR = Path(__file__).parent


def load_settings(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    런타임 설정 로드

    Args:
        config_path: 설정 파일 경로 (기본: config/settings.yaml)

    Returns:
        설정 딕셔너리
    """
    if config_path is None:
        config_path = CONFIG_DIR / "settings.yaml"

    if not os.path.exists(config_path):
        return get_default_settings()

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    return config or get_default_settings()


def get_default_settings() -> Dict[str, Any]:
    """기본 설정 반환"""
    return {
        "timeouts": get_default_timeouts(),
        "validation": get_default_validation_limits(),
        "duration_policy": get_default_duration_policy(),
        "llm": {"script_model": "gpt-4o", "guard_model": "gpt-4o-mini"},
        "renderer": {"api_base_url": "https://api.creatomate.com/v1"},
        "stuck_requests": {"sweep_interval_sec": 300, "max_processing_minutes": 15},
        "estimated_completion_minutes": 5,
    }


def get_default_timeouts() -> Dict[str, float]:
    return {
        "script_generation_sec": 60,
        "template_generation_sec": 60,
        "render_submission_sec": 120,
        "database_operation_sec": 30,
    }


def get_default_validation_limits() -> Dict[str, Any]:
    return {
        "prompt_max_length": 2000,
        "system_prompt_max_length": 2000,
        "min_videos": 1,
        "max_videos": 10,
        "supported_languages": ["en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh"],
        "caption_placements": ["top", "center", "bottom"],
    }


def get_default_duration_policy() -> Dict[str, Any]:
    return {
        "words_to_seconds": 0.7,
        "safety_margin": 0.95,
        "max_repair_attempts": 3,
    }


def get_timeouts() -> Dict[str, float]:
    """파이프라인 단계별 타임아웃 (초)"""
    config = load_settings()
    timeouts = get_default_timeouts()
    timeouts.update(config.get("timeouts") or {})
    return timeouts


def get_validation_limits() -> Dict[str, Any]:
    """요청 검증 한계값"""
    config = load_settings()
    limits = get_default_validation_limits()
    limits.update(config.get("validation") or {})
    return limits


def get_duration_policy() -> Dict[str, Any]:
    """씬 길이 검증 정책 (단어당 초, 안전 마진, 재시도 횟수)"""
    config = load_settings()
    policy = get_default_duration_policy()
    policy.update(config.get("duration_policy") or {})
    return policy


def get_llm_config() -> Dict[str, Any]:
    """
    LLM 모델 설정 반환

    Returns:
        역할별 모델명 딕셔너리 (script_model, review_model, planner_model, ...)
    """
    config = load_settings()
    llm = {
        "script_model": "gpt-4o",
        "review_model": "gpt-4o",
        "planner_model": "gpt-4o",
        "chat_model": "gpt-4o",
        "guard_model": "gpt-4o-mini",
        "temperature": 0.7,
    }
    llm.update(config.get("llm") or {})
    return llm


def get_renderer_config() -> Dict[str, Any]:
    """Creatomate 렌더러 설정 (웹훅 URL은 환경변수 우선)"""
    config = load_settings()
    renderer = {
        "api_base_url": "https://api.creatomate.com/v1",
    }
    renderer.update(config.get("renderer") or {})
    renderer["webhook_url"] = os.getenv("CREATOMATE_WEBHOOK_URL", renderer.get("webhook_url"))
    return renderer


def get_stuck_request_policy() -> Dict[str, Any]:
    config = load_settings()
    policy = {"sweep_interval_sec": 300, "max_processing_minutes": 15}
    policy.update(config.get("stuck_requests") or {})
    return policy


def get_estimated_completion_minutes() -> int:
    return int(load_settings().get("estimated_completion_minutes", 5))
