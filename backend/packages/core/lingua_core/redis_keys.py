"""Redis key templates, queue names, and TTL constants.

Centralized management of all Redis keys used by the orchestration core to
prevent conflicts and make maintenance easier.
"""


class RedisKeys:
    """Redis key templates and helper methods."""

    # ============================================================================
    # Queues
    # ============================================================================

    # Long-running coordinator waits live on their own queue so they never
    # occupy translation slots.
    COORDINATOR_QUEUE = "lingua:coordinator"
    TRANSLATION_QUEUE = "lingua:translations"

    # ============================================================================
    # Completion Signal Keys
    # ============================================================================

    # Completion signal list for a task (RPUSH by evaluator, BLPOP by coordinator)
    # Format: translation_completion:{task_id}
    # TTL: 24 hours, refreshed on every push
    COMPLETION_SIGNAL_TTL = 86400

    @staticmethod
    def completion_signal(task_id: str) -> str:
        """
        Get the completion signal list key for a task.

        Args:
            task_id: Translation task UUID.

        Returns:
            Redis key string.
        """
        return f"translation_completion:{task_id}"

    # Absolute wait deadline for a task's current round (epoch seconds)
    # Format: translation_wait_deadline:{task_id}
    # TTL: coordinator timeout plus a grace period
    WAIT_DEADLINE_GRACE = 3600

    @staticmethod
    def wait_deadline(task_id: str) -> str:
        """
        Get the wait deadline key for a task.

        Written with SET NX so a restarted coordinator keeps the original bound.

        Args:
            task_id: Translation task UUID.

        Returns:
            Redis key string.
        """
        return f"translation_wait_deadline:{task_id}"

    # ============================================================================
    # Job IDs
    # ============================================================================

    @staticmethod
    def coordinate_job_id(task_id: str) -> str:
        """Deterministic arq job id for a task's coordinator run."""
        return f"coordinate:{task_id}"

    @staticmethod
    def await_job_id(task_id: str, translation_id: str) -> str:
        """Deterministic arq job id for a retranslation round's waiter."""
        return f"await:{task_id}:{translation_id}"

    @staticmethod
    def translate_job_id(task_id: str, language_code: str) -> str:
        """Deterministic arq job id for an initial per-language attempt."""
        return f"translate-language:{task_id}:{language_code}"

    @staticmethod
    def retranslate_job_id(translation_id: str) -> str:
        """Deterministic arq job id for a retranslation attempt."""
        return f"retranslate-language:{translation_id}"
