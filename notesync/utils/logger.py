"""
Logging helpers for the notesync package.

Provides a thin wrapper around the standard logging module so state
transitions can be logged as a header followed by indented detail lines.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Union


class StructuredLogger:
    """
    Convenience wrapper enabling structured line-by-line logging.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info_fields("Notes loaded", {"count": 3, "selected_id": 7})
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def debug(self, message: str, *args: Any) -> None:
        self._logger.debug(message, *args)

    def info(self, message: str, *args: Any) -> None:
        self._logger.info(message, *args)

    def warning(self, message: str, *args: Any) -> None:
        self._logger.warning(message, *args)

    def info_lines(
        self,
        header: Union[str, None],
        lines: Iterable[str],
        *,
        prefix: str = "  ",
    ) -> None:
        """
        Emit a header (optional) followed by each line as an INFO log.
        """
        if not self._logger.isEnabledFor(logging.INFO):
            return
        if header:
            self.info(header)
        for line in lines:
            self.info(f"{prefix}{line}")

    def info_fields(self, header: Union[str, None], fields: Mapping[str, Any]) -> None:
        self.info_lines(header, [f"{key}={value!r}" for key, value in fields.items()])


__all__ = ["StructuredLogger"]
