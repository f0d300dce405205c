"""Runtime configuration for the runner, read from the environment on demand."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from cursor_runner.conversation.domain.conversation_store import DEFAULT_TTL_SECONDS
from cursor_runner.process.domain.run_options import (
    DEFAULT_GRACE_SECONDS,
    DEFAULT_HEARTBEAT_SECONDS,
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    RunOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_CLI_PATH = "cursor-agent"
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_REDIS_URL = "redis://redis:6379/0"


@dataclass(frozen=True)
class RunnerSettings:
    """Settings for the process runner, semaphore and conversation store.

    Nothing here is captured at import time: build an instance with
    ``from_env()`` where the component is constructed, so tests and
    reconfiguration only need a new instance.

    Attributes:
        cli_path: Assistant executable
        timeout_seconds: Default per-call budget
        max_output_bytes: Per-stream output cap
        max_concurrent: Semaphore capacity
        idle_timeout_seconds: Kill a silent process after this long (None disables)
        grace_seconds: Wait between SIGTERM and SIGKILL
        heartbeat_seconds: Interval between progress log lines
        redis_url: Conversation store location
        conversation_ttl_seconds: Conversation expiry window
        log_level: Root logging level name
    """

    cli_path: str = DEFAULT_CLI_PATH
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    idle_timeout_seconds: float | None = None
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS
    redis_url: str = DEFAULT_REDIS_URL
    conversation_ttl_seconds: int = DEFAULT_TTL_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RunnerSettings:
        """Load settings from the environment.

        Millisecond variables keep the names and units of the deployment
        environment. Unparseable or non-positive numbers fall back to the
        default with a warning.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            RunnerSettings instance
        """
        env = os.environ if environ is None else environ
        timeout_ms = _positive_int(env, "CURSOR_CLI_TIMEOUT", int(DEFAULT_TIMEOUT_SECONDS * 1000))
        idle_ms = _positive_int(env, "CURSOR_CLI_IDLE_TIMEOUT", 0)
        return cls(
            cli_path=env.get("CURSOR_CLI_PATH") or DEFAULT_CLI_PATH,
            timeout_seconds=timeout_ms / 1000,
            max_output_bytes=_positive_int(
                env, "CURSOR_CLI_MAX_OUTPUT_SIZE", DEFAULT_MAX_OUTPUT_BYTES
            ),
            max_concurrent=_positive_int(env, "CURSOR_CLI_MAX_CONCURRENT", DEFAULT_MAX_CONCURRENT),
            idle_timeout_seconds=idle_ms / 1000 if idle_ms else None,
            redis_url=env.get("REDIS_URL") or DEFAULT_REDIS_URL,
            conversation_ttl_seconds=_positive_int(
                env, "CONVERSATION_TTL_SECONDS", DEFAULT_TTL_SECONDS
            ),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )

    def run_options(
        self,
        *,
        timeout_seconds: float | None = None,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> RunOptions:
        """Build RunOptions from these settings.

        Args:
            timeout_seconds: Per-call override of the default budget
            cwd: Working directory for the child
            env: Environment for the child

        Returns:
            RunOptions instance
        """
        return RunOptions(
            timeout_seconds=timeout_seconds or self.timeout_seconds,
            max_output_bytes=self.max_output_bytes,
            cwd=cwd,
            env=env,
            grace_seconds=self.grace_seconds,
            idle_timeout_seconds=self.idle_timeout_seconds,
            heartbeat_seconds=self.heartbeat_seconds,
        )

def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %d", name, raw, default)
        return default
    return value
