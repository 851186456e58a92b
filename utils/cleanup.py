"""
ClipScript cleanup

Policy:
- Failed generation: delete the orphan script row, write an activity log row.
  Cleanup errors are logged, never raised.
- Requests stuck in 'processing' longer than stuck_requests.max_processing_minutes
  (worker restarted mid-pipeline): marked failed by a periodic sweep.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from config import get_stuck_request_policy
from utils.constants import ACTION_GENERATION_CLEANUP, ACTION_STUCK_REQUEST
from utils.error_manager import ErrorManager
from utils.errors import GenerationError
from utils.logger import get_logger

logger = get_logger("cleanup")

STUCK_REQUEST_MESSAGE = "Processing interrupted. Please try again."


async def cleanup_on_failure(
    repo,
    request_id: str,
    user_id: str,
    script_id: Optional[str],
    error_message: str,
):
    """실패한 요청의 부산물 정리 (best-effort)"""
    if script_id:
        try:
            await repo.delete_script(script_id)
            logger.info(f"[CLEANUP] [{request_id}] Deleted orphan script {script_id}")
        except GenerationError as e:
            logger.error(f"[CLEANUP] [{request_id}] Failed to delete script {script_id}: {e}")
            ErrorManager.log_exception("cleanup", e, request_id=request_id)

    try:
        await repo.log_activity(
            user_id,
            ACTION_GENERATION_CLEANUP,
            {"request_id": request_id, "script_id": script_id, "error": error_message},
        )
    except GenerationError as e:
        logger.error(f"[CLEANUP] [{request_id}] Failed to write activity log: {e}")


async def sweep_stuck_requests(repo, max_processing_minutes: Optional[float] = None) -> int:
    """오래된 processing 요청을 failed 로 전환. 전환된 요청 수 반환"""
    if max_processing_minutes is None:
        max_processing_minutes = get_stuck_request_policy()["max_processing_minutes"]
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max_processing_minutes)

    swept = 0
    for request in await repo.find_stuck_requests(cutoff):
        if await repo.fail_request(request.id, STUCK_REQUEST_MESSAGE):
            swept += 1
            logger.warning(f"[CLEANUP] [{request.id}] Marked stuck request as failed")
            try:
                await repo.log_activity(
                    request.user_id, ACTION_STUCK_REQUEST, {"request_id": request.id}
                )
            except GenerationError as e:
                logger.error(f"[CLEANUP] [{request.id}] Failed to write activity log: {e}")
    return swept


async def _cleanup_loop(repo):
    """Async loop that sweeps stuck requests at a fixed interval."""
    interval = get_stuck_request_policy()["sweep_interval_sec"]
    while True:
        await asyncio.sleep(interval)
        try:
            swept = await sweep_stuck_requests(repo)
            if swept:
                logger.info(f"[CLEANUP] Completed: {swept} stuck requests failed")
        except GenerationError as e:
            logger.error(f"[CLEANUP] Error: {e}")


def start_cleanup_scheduler(repo) -> asyncio.Task:
    """Register the sweep loop in the running asyncio event loop."""
    return asyncio.ensure_future(_cleanup_loop(repo))
