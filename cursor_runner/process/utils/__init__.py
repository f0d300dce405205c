"""Process utilities."""

from cursor_runner.process.utils.arg_summary import summarize_args

__all__ = ["summarize_args"]
