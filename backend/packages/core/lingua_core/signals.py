"""
Task completion signals over Redis.

The evaluator pushes a ``CompletionSignal`` onto a per-task list; the
coordinator pops from that list with ``BLPOP`` in short slices until its
deadline. Both the list and the deadline survive worker restarts, so a
coordinator re-run by the queue resumes the same wait.
"""

import math
import time
from typing import Any

from lingua_core import get_logger
from lingua_core.redis_keys import RedisKeys
from lingua_core.schemas import CompletionSignal

logger = get_logger(__name__)


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


async def publish_completion_signal(redis: Any, signal: CompletionSignal) -> None:
    """
    Publish a completion signal for a task.

    Args:
        redis: Redis (or ArqRedis) connection.
        signal: Signal to deliver to the task's waiter.
    """
    key = RedisKeys.completion_signal(signal.task_id)
    await redis.rpush(key, signal.model_dump_json())
    await redis.expire(key, RedisKeys.COMPLETION_SIGNAL_TTL)
    logger.info(
        "Published completion signal",
        extra={
            "task_id": signal.task_id,
            "success": signal.success,
            "completed_languages": signal.completed_languages,
            "failed_languages": signal.failed_languages,
        },
    )


async def claim_wait_deadline(redis: Any, task_id: str, timeout_seconds: float) -> float:
    """
    Get the absolute deadline for a task's current wait round.

    The first caller fixes the deadline; later callers (restarted
    coordinators) get the same value back.

    Returns:
        Deadline as epoch seconds.
    """
    key = RedisKeys.wait_deadline(task_id)
    ttl = int(timeout_seconds) + RedisKeys.WAIT_DEADLINE_GRACE
    while True:
        deadline = time.time() + timeout_seconds
        if await redis.set(key, repr(deadline), nx=True, ex=ttl):
            return deadline

        existing = await redis.get(key)
        if existing is not None:
            return float(_decode(existing))
        # Expired between SET NX and GET; try to store one again


async def wait_for_completion_signal(
    redis: Any,
    task_id: str,
    timeout_seconds: float,
    poll_seconds: int = 5,
) -> CompletionSignal | None:
    """
    Block until the task's completion signal arrives or the deadline passes.

    Messages for other tasks are ignored; the key is task scoped so none are
    expected.

    Returns:
        The signal, or None on timeout.
    """
    deadline = await claim_wait_deadline(redis, task_id, timeout_seconds)
    key = RedisKeys.completion_signal(task_id)

    while True:
        remaining = deadline - time.time()
        if remaining <= 0:
            logger.warning("Completion wait timed out", extra={"task_id": task_id})
            return None

        popped = await redis.blpop([key], timeout=max(1, min(poll_seconds, math.ceil(remaining))))
        if popped is None:
            continue

        _, raw = popped
        signal = CompletionSignal.model_validate_json(_decode(raw))
        if signal.task_id != task_id:
            logger.warning(
                "Ignoring completion signal for another task",
                extra={"task_id": task_id, "signal_task_id": signal.task_id},
            )
            continue
        return signal


async def reset_completion_round(redis: Any, task_id: str) -> None:
    """
    Drop any pending signal and deadline for a task.

    Used when a finalized task is reopened so a late signal from an earlier
    round cannot finalize the new one.
    """
    await redis.delete(RedisKeys.completion_signal(task_id), RedisKeys.wait_deadline(task_id))
