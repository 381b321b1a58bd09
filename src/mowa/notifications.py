"""Fire-and-forget notifications about storage operations."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Mapping, Optional, Sequence

import structlog

from .messages.groups import expand_groups
from .messages.models import MessageResult
from .messages.sender import MessageSender

log = structlog.get_logger(__name__)


def build_notification_message(operation: str, path: Path, success: bool, message: str) -> str:
    if success:
        return f"{path.name} {message}"
    return f"Failed to {operation} {path.name}: {message}"


class StorageNotifier:
    """Dispatch storage notifications as detached asyncio tasks.

    A failed notification is logged and never reaches the HTTP response.
    """

    def __init__(self, sender: MessageSender, groups: Mapping[str, Sequence[str]]) -> None:
        self._sender = sender
        self._groups = groups
        self._tasks: set[asyncio.Task[list[MessageResult]]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        recipients: Optional[Sequence[str]],
        *,
        operation: str,
        path: Path,
        success: bool,
        message: str,
    ) -> Optional[asyncio.Task[list[MessageResult]]]:
        if not recipients:
            return None
        task = asyncio.create_task(
            self.notify(recipients, operation=operation, path=path, success=success, message=message)
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def notify(
        self,
        recipients: Sequence[str],
        *,
        operation: str,
        path: Path,
        success: bool,
        message: str,
    ) -> list[MessageResult]:
        text = build_notification_message(operation, path, success, message)
        results = await self._sender.send_messages(expand_groups(recipients, self._groups), text)
        for result in results:
            if result.success:
                log.info("notifications.sent", recipient=result.recipient)
            else:
                log.warning("notifications.failed", recipient=result.recipient, error=result.error)
        return results

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending notifications on shutdown, cancelling any still running after ``timeout``."""
        tasks = {task for task in self._tasks if not task.done()}
        if not tasks:
            return
        try:
            await asyncio.wait_for(asyncio.gather(*tasks, return_exceptions=True), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("notifications.drain_timeout", cancelled=sum(not task.done() for task in tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, task: asyncio.Task[list[MessageResult]]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("notifications.dispatch_failed", error=str(exc), exc_info=exc)
