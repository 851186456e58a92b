"""
프롬프트 뱅크

config/prompt_bank.yaml 에 정의된 프롬프트를 조회하고 {key} 자리표시자를 채웁니다.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

PROMPT_BANK_PATH = Path(__file__).parent.parent / "config" / "prompt_bank.yaml"


@lru_cache(maxsize=4)
def load_prompt_bank(path: str = str(PROMPT_BANK_PATH)) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or []


def get_all_prompts() -> List[Dict[str, Any]]:
    return load_prompt_bank()


def get_prompt(prompt_id: str) -> Optional[Dict[str, Any]]:
    for prompt in load_prompt_bank():
        if prompt.get("id") == prompt_id:
            return prompt
    return None


def get_prompts_by_tag(tag: str) -> List[Dict[str, Any]]:
    return [p for p in load_prompt_bank() if tag in p.get("tags", [])]


def get_latest_prompts() -> List[Dict[str, Any]]:
    return [p for p in load_prompt_bank() if p.get("status") == "LATEST"]


def _fill(template: str, values: Dict[str, Any]) -> str:
    for key, value in values.items():
        if isinstance(value, (dict, list)):
            text = json.dumps(value, indent=2, ensure_ascii=False)
        else:
            text = "" if value is None else str(value)
        template = template.replace("{" + key + "}", text)
    return template


def fill_prompt_template(prompt_id: str, values: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """
    프롬프트 자리표시자 채우기.

    Args:
        prompt_id: 프롬프트 ID (예: "video-scene-planner-v5")
        values: 자리표시자 값. dict/list 는 JSON 으로 직렬화

    Returns:
        {"system", "user"[, "developer"]} 또는 프롬프트가 없으면 None
    """
    prompt = get_prompt(prompt_id)
    if prompt is None:
        return None

    parts = prompt.get("prompts", {})
    filled = {
        "system": _fill(parts.get("system", ""), values),
        "user": _fill(parts.get("user", ""), values),
    }
    if parts.get("developer"):
        filled["developer"] = _fill(parts["developer"], values)
    return filled
