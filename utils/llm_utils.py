"""
LLM 응답 파싱 유틸리티

OpenAI 응답에서 마크다운 래핑 JSON 을 파싱하고 pydantic 모델로 검증합니다.
"""
import json
import re
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from utils.errors import ContractError

T = TypeVar("T", bound=BaseModel)

_SCRIPT_BLOCK_RE = re.compile(r"\[SCRIPT_START\](.*?)\[SCRIPT_END\]", re.DOTALL)


def parse_llm_json(text: str) -> dict:
    """LLM 응답에서 마크다운 코드블록 제거 후 JSON 파싱.

    지원 패턴:
      - ```json ... ```
      - ``` ... ```
      - 순수 JSON
    """
    text = (text or "").strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 3:
            inner = parts[1]
            if inner.startswith("json"):
                inner = inner[4:]
            text = inner.strip()
        else:
            # 닫는 ``` 없는 경우
            text = text.split("\n", 1)[1] if "\n" in text else text[3:]
            text = text.strip()
    return json.loads(text)


def parse_llm_model(text: str, model_cls: Type[T], source: str = "LLM") -> T:
    """
    LLM 응답을 파싱해서 model_cls 로 검증.

    Raises:
        ContractError: JSON 이 아니거나 스키마에 맞지 않는 응답
    """
    try:
        data = parse_llm_json(text)
    except json.JSONDecodeError as e:
        raise ContractError(
            f"{source} returned invalid JSON: {e.msg}",
            context={"response_preview": (text or "")[:200]},
        ) from e
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise ContractError(
            f"{source} response does not match {model_cls.__name__}: {e.error_count()} errors",
            context={"errors": e.errors(include_url=False)[:5]},
        ) from e


def extract_script_block(text: str) -> Optional[str]:
    """[SCRIPT_START] ... [SCRIPT_END] 사이 스크립트 추출"""
    match = _SCRIPT_BLOCK_RE.search(text or "")
    if match is None:
        return None
    script = match.group(1).strip()
    return script or None


def strip_script_block(text: str) -> str:
    """채팅 응답에서 스크립트 블록을 제거한 대화 부분"""
    return _SCRIPT_BLOCK_RE.sub("", text or "").strip()
