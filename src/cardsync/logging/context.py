"""
Logger adapter that stamps structured fields onto every record.

Keyword arguments that are not ``logging`` options become record
attributes, which the formatters render as context:

    log = ContextLogger("cardsync.orchestrator", run_id="3f2a")
    log.info("Stage finished", stage="reading", record_count=1200)
"""

import logging
from typing import Any

_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


class ContextLogger(logging.LoggerAdapter):
    """Adapter carrying a context dict such as ``run_id`` and ``stage``."""

    def __init__(self, name: str, **context: Any):
        super().__init__(logging.getLogger(name), dict(context))

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KWARGS}
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {}), **fields}
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextLogger":
        """New adapter on the same logger with extra context merged in."""
        return ContextLogger(self.logger.name, **{**self.extra, **context})
