"""
OpenAI chat client

파이프라인 단계에서 asyncio.wait_for 로 취소할 수 있도록 AsyncOpenAI 를 사용합니다.
"""

import os
from typing import AsyncIterator, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from config import get_llm_config
from utils.errors import ExternalServiceError
from utils.llm_utils import parse_llm_model
from utils.logger import get_logger

logger = get_logger("llm_client")

T = TypeVar("T", bound=BaseModel)


class LLMClient:
    """
    Thin wrapper over openai.AsyncOpenAI.

    Network and API failures surface as ExternalServiceError. Malformed JSON
    or schema mismatches surface as ContractError from parse_llm_model.
    """

    def __init__(self, api_key: str = None, model: str = None):
        """
        Args:
            api_key: OpenAI API key (기본: OPENAI_API_KEY)
            model: 기본 모델명 (기본: settings.yaml llm.script_model)
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.config = get_llm_config()
        self.model = model or self.config["script_model"]
        self._client = None

    @property
    def client(self):
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ExternalServiceError(
                    "OPENAI_API_KEY is not configured", code="LLM_NOT_CONFIGURED", retryable=False
                )
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _messages(self, system: str, user: str, history: Optional[List[Dict[str, str]]] = None):
        messages = [{"role": "system", "content": system}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": user})
        return messages

    async def _create(self, messages, model: str = None, json_mode: bool = False, **kwargs):
        from openai import OpenAIError

        params = {
            "model": model or self.model,
            "messages": messages,
            "temperature": kwargs.pop("temperature", self.config.get("temperature", 0.7)),
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        params.update(kwargs)
        try:
            return await self.client.chat.completions.create(**params)
        except OpenAIError as e:
            raise ExternalServiceError(f"OpenAI request failed: {e}", code="LLM_ERROR") from e

    async def complete_text(
        self,
        system: str,
        user: str,
        model: str = None,
        history: Optional[List[Dict[str, str]]] = None,
        **kwargs,
    ) -> str:
        response = await self._create(self._messages(system, user, history), model=model, **kwargs)
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ExternalServiceError("OpenAI returned an empty response", code="LLM_EMPTY_RESPONSE")
        return content

    async def complete_structured(
        self, system: str, user: str, model_cls: Type[T], model: str = None, **kwargs
    ) -> T:
        """JSON 모드로 호출 후 model_cls 로 검증"""
        response = await self._create(
            self._messages(system, user), model=model, json_mode=True, **kwargs
        )
        content = response.choices[0].message.content or ""
        return parse_llm_model(content, model_cls, source=model or self.model)

    async def stream_text(
        self,
        system: str,
        user: str,
        model: str = None,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> AsyncIterator[str]:
        from openai import OpenAIError

        stream = await self._create(
            self._messages(system, user, history), model=model, stream=True
        )
        try:
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except OpenAIError as e:
            raise ExternalServiceError(f"OpenAI stream failed: {e}", code="LLM_ERROR") from e
