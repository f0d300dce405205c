"""Base exception shared by every cursor_runner component."""


class CursorRunnerError(Exception):
    """Root of the cursor_runner exception hierarchy.

    Callers that only need to tell "our failure" apart from arbitrary
    exceptions can catch this; each domain defines its own subclasses so the
    individual outcomes stay distinguishable.
    """
