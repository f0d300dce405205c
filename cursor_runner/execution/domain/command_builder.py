"""Argument assembly for the assistant CLI."""

from __future__ import annotations

import re
from collections.abc import Sequence

from cursor_runner.execution.domain.execution_request import ExecutionRequest

# --print: non-interactive mode; --force: allow file edits;
# --approve-mcps: auto-approve configured MCP servers in headless runs
HEADLESS_FLAGS: tuple[str, ...] = ("--print", "--force", "--approve-mcps")

_SESSION_ID_PATTERN = re.compile(r'"(?:session_id|sessionId|chat_id|chatId)"\s*:\s*"([^"\s]+)"')


class CommandBuilder:
    """Builds argv for fresh and resumed assistant invocations.

    Fresh:   ``<cli> --model <model> --print --force --approve-mcps <prompt>``
    Resumed: ``<cli> --model <model> --print --force --approve-mcps
    --resume <session_token> <prompt>``

    The prompt is always the last argument.
    """

    def __init__(self, executable: str, extra_flags: Sequence[str] = ()) -> None:
        """Initialize the builder.

        Args:
            executable: Assistant CLI name or path
            extra_flags: Flags inserted before the prompt on every invocation
        """
        if not executable:
            raise ValueError("executable must not be empty")
        self.executable = executable
        self.extra_flags = tuple(extra_flags)

    def fresh(self, request: ExecutionRequest) -> list[str]:
        """Arguments for starting a new assistant session."""
        return [*self._common(request), request.prompt]

    def resume(self, request: ExecutionRequest, session_token: str) -> list[str]:
        """Arguments for continuing the session identified by session_token."""
        if not session_token:
            raise ValueError("session_token must not be empty")
        return [*self._common(request), "--resume", session_token, request.prompt]

    def version(self) -> list[str]:
        """Arguments for asking the CLI for its version."""
        return ["--version"]

    def _common(self, request: ExecutionRequest) -> list[str]:
        return ["--model", request.model, *HEADLESS_FLAGS, *self.extra_flags]

    @staticmethod
    def extract_session_token(output: str) -> str | None:
        """Find the session id the assistant reported in its output.

        Recognises ``session_id``/``chatId`` style keys in JSON output.

        Args:
            output: Captured standard output

        Returns:
            The last reported session id, or None
        """
        matches = _SESSION_ID_PATTERN.findall(output)
        return matches[-1] if matches else None
