"""Compact, log-friendly summaries of command-line arguments.

Assistant prompts are passed as a single very long argument. Logging the
argv verbatim floods the log, so we log the flags plus a short preview of
the prompt instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

LONG_ARG_THRESHOLD = 200
PREVIEW_CHARS = 80
FIRST_LINE_CHARS = 100
MAX_SHORT_ARGS = 3


def summarize_args(args: Sequence[str]) -> dict[str, Any]:
    """Summarize an argument list for logging.

    Args:
        args: Arguments passed to the executable

    Returns:
        Dictionary with ``arg_count``, ``flags`` and either a
        ``prompt_summary`` for the last long argument or up to three
        ``short_args`` when no long argument exists
    """
    summary: dict[str, Any] = {
        "arg_count": len(args),
        "flags": [arg for arg in args if arg.startswith("--")],
        "prompt_summary": None,
    }

    for arg in args:
        if len(arg) <= LONG_ARG_THRESHOLD:
            continue
        lines = arg.split("\n")
        first_line = next((line for line in lines if line.strip()), lines[0])
        first_line = first_line.strip()[:FIRST_LINE_CHARS]
        preview = (
            first_line[:PREVIEW_CHARS] + "..." if len(first_line) > PREVIEW_CHARS else first_line
        )
        summary["prompt_summary"] = {
            "preview": preview,
            "length": len(arg),
            "line_count": len(lines),
            "first_line": first_line,
        }

    if summary["prompt_summary"] is None:
        short_args = [arg for arg in args if len(arg) <= LONG_ARG_THRESHOLD][:MAX_SHORT_ARGS]
        if short_args:
            summary["short_args"] = short_args

    return summary
