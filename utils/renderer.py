"""
Creatomate render client (aiohttp)
"""

import json
import os
from typing import Any, Dict, Optional

import aiohttp

from config import get_renderer_config
from utils.errors import ExternalServiceError
from utils.logger import get_logger

logger = get_logger("renderer")


class CreatomateClient:
    """Submit render jobs and read their status."""

    def __init__(self, api_key: str = None, base_url: str = None, webhook_url: str = None):
        config = get_renderer_config()
        self.api_key = api_key or os.getenv("CREATOMATE_API_KEY")
        self.base_url = (base_url or config["api_base_url"]).rstrip("/")
        self.webhook_url = webhook_url or config.get("webhook_url")

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ExternalServiceError(
                "CREATOMATE_API_KEY is not configured", code="RENDERER_NOT_CONFIGURED", retryable=False
            )
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def submit(self, template: Dict[str, Any], metadata: Dict[str, Any]) -> str:
        """
        렌더 작업 제출.

        Args:
            template: 검증된 렌더 템플릿 (source JSON)
            metadata: 웹훅에서 요청을 찾기 위한 상관관계 데이터 (JSON 문자열로 전송)

        Returns:
            Creatomate render id
        """
        body = {"source": template, "metadata": json.dumps(metadata)}
        if self.webhook_url:
            body["webhook_url"] = self.webhook_url

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.base_url}/renders", headers=self._headers(), json=body
                ) as resp:
                    text = await resp.text()
                    if resp.status >= 400:
                        raise ExternalServiceError(
                            f"Creatomate rejected render ({resp.status}): {text[:300]}",
                            code="RENDER_SUBMISSION_FAILED",
                            retryable=resp.status >= 500,
                        )
                    data = json.loads(text)
        except aiohttp.ClientError as e:
            raise ExternalServiceError(
                f"Creatomate request failed: {e}", code="RENDER_SUBMISSION_FAILED"
            ) from e

        render = data[0] if isinstance(data, list) else data
        render_id = render.get("id") if isinstance(render, dict) else None
        if not render_id:
            raise ExternalServiceError(
                "Creatomate response has no render id", code="RENDER_SUBMISSION_FAILED"
            )
        logger.info(f"Render submitted: {render_id} (status={render.get('status')})")
        return render_id

    async def get_render(self, render_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    f"{self.base_url}/renders/{render_id}", headers=self._headers()
                ) as resp:
                    if resp.status == 404:
                        return None
                    if resp.status >= 400:
                        raise ExternalServiceError(
                            f"Creatomate status check failed ({resp.status})", code="RENDER_STATUS_FAILED"
                        )
                    return await resp.json()
        except aiohttp.ClientError as e:
            raise ExternalServiceError(
                f"Creatomate request failed: {e}", code="RENDER_STATUS_FAILED"
            ) from e
