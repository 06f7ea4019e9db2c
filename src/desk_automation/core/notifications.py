"""
Notification interface.

The orchestrator reports scheduled and manual execution results through a
Notifier. Delivery is fire-and-forget: a notifier that raises is logged and
otherwise ignored by the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract user notification channel."""

    @abstractmethod
    async def send_success(self, title: str, message: str) -> None:
        """Report a successful automation run."""
        pass

    @abstractmethod
    async def send_error(self, title: str, message: str) -> None:
        """Report a failed automation run."""
        pass


class LoggingNotifier(Notifier):
    """Notifier that writes notifications to the log."""

    async def send_success(self, title: str, message: str) -> None:
        logger.info(f"[notification] {title}: {message}")

    async def send_error(self, title: str, message: str) -> None:
        logger.warning(f"[notification] {title}: {message}")


class MockNotifier(Notifier):
    """
    Mock notifier for testing.

    Records every notification as a (level, title, message) tuple.
    """

    def __init__(self, fail: bool = False) -> None:
        self._sent: List[Tuple[str, str, str]] = []
        self.fail = fail

    @property
    def sent(self) -> List[Tuple[str, str, str]]:
        return self._sent.copy()

    def clear(self) -> None:
        self._sent.clear()

    async def send_success(self, title: str, message: str) -> None:
        if self.fail:
            raise RuntimeError("notification delivery failed")
        self._sent.append(("success", title, message))

    async def send_error(self, title: str, message: str) -> None:
        if self.fail:
            raise RuntimeError("notification delivery failed")
        self._sent.append(("error", title, message))
