# app/errors.py
"""
Error taxonomy for file browser operations.

Each error also derives from the closest builtin so callers that already
catch PermissionError / FileNotFoundError / ValueError / OSError keep working.
`status` is the suggested transport status; the core never uses it.
"""


class FileBrowserError(Exception):
    status: int = 500


class Forbidden(FileBrowserError, PermissionError):
    """Containment, policy or extension check declined the operation."""
    status = 403


class NotFound(FileBrowserError, FileNotFoundError):
    status = 404


class InvalidArgument(FileBrowserError, ValueError):
    """Empty or illegal entry name / kind."""
    status = 400


class IOFailure(FileBrowserError, OSError):
    """Underlying filesystem error that is not otherwise classified."""
    status = 500
