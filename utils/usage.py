"""
사용량 한도 체크 / 증가

user_usage 행의 (사용량 컬럼, 한도 컬럼) 쌍으로 리소스별 한도를 판단합니다.
"""

from typing import Any, Dict, Optional, Tuple

from utils.errors import DatabaseError
from utils.logger import get_logger

logger = get_logger("usage")

# resource -> (used column, limit column)
RESOURCE_FIELDS: Dict[str, Tuple[str, str]] = {
    "videos_generated": ("videos_generated", "videos_limit"),
    "source_videos": ("source_videos_used", "source_videos_limit"),
    "voice_clones": ("voice_clones_used", "voice_clones_limit"),
    "account_analysis": ("account_analysis_used", "account_analysis_limit"),
}


async def check_usage_limit(repo, user_id: str, resource: str) -> Dict[str, Any]:
    """
    사용량 한도 도달 여부 확인.

    DB 조회 실패 시에는 사용자를 막지 않도록 limit_reached=False 를 반환합니다.

    Returns:
        {"limit_reached": bool, "used": int | None, "limit": int | None}
    """
    used_field, limit_field = RESOURCE_FIELDS[resource]
    try:
        usage: Optional[Dict[str, Any]] = await repo.get_usage(user_id)
    except DatabaseError as e:
        logger.error(f"Failed to read usage for user {user_id}: {e}")
        return {"limit_reached": False, "used": None, "limit": None}

    if usage is None:
        logger.warning(f"No usage row for user {user_id}")
        return {"limit_reached": True, "used": None, "limit": None}

    used = usage.get(used_field) or 0
    limit = usage.get(limit_field)
    if limit is None:
        return {"limit_reached": False, "used": used, "limit": None}
    return {"limit_reached": used >= limit, "used": used, "limit": limit}


async def increment_usage(repo, user_id: str, resource: str) -> bool:
    used_field, _ = RESOURCE_FIELDS[resource]
    try:
        await repo.increment_usage(user_id, used_field)
    except DatabaseError as e:
        logger.error(f"Failed to increment {used_field} for user {user_id}: {e}")
        return False
    return True
