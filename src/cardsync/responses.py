"""
JSON response envelope shared by every command.

Success: ``{"success": true, "message": ..., "data": ...}``
Failure: ``{"success": false, "error": ..., "data"?: ...}``; sync failures
also carry ``stage`` and ``error_type``.
"""

from typing import Any

from .errors import SyncError


def success_envelope(data: Any, message: str) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        envelope["data"] = data
    return envelope


def error_envelope(error: BaseException | str, data: Any = None) -> dict[str, Any]:
    """
    Build a failure envelope.

    Args:
        error: Exception or message
        data: Optional payload (e.g. failing row details)
    """
    envelope: dict[str, Any] = {"success": False}

    if isinstance(error, SyncError):
        envelope["error"] = error.detail
        envelope["stage"] = error.stage.value
        envelope["error_type"] = error.error_type
        details = {
            k: v
            for k, v in error.to_dict().items()
            if k not in ("stage", "error_type", "detail")
        }
        if details and data is None:
            data = details
    else:
        envelope["error"] = str(error)

    if data is not None:
        envelope["data"] = data
    return envelope
