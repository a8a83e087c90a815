"""
Budget alert reporting.

Delivers newly fired budget alerts to an external sink (a dashboard file,
a chat webhook, anything callable) at most once per interval.
"""

import asyncio
import inspect
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger

from tierwise.config.schema import ReportingConfig
from tierwise.tracking.budget import BudgetAlert

AlertSink = Callable[[str], "Awaitable[Any] | Any"]

ALERT_MARKER = "**Budget alert"


class AlertReporter:
    """
    Throttled, fire-and-forget alert delivery.

    A batch of alerts from one update is delivered as its most severe
    (last) alert. The sink's own failures are logged and never propagate
    into the request path.
    """

    def __init__(
        self,
        sink: AlertSink,
        min_interval_seconds: float = 3600,
        clock: Callable[[], float] | None = None,
    ):
        self.sink = sink
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock or time.monotonic
        self._last_sent: float | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: ReportingConfig) -> "AlertReporter | None":
        if not config.enabled:
            return None
        sink = MarkdownDashboardSink(Path(config.dashboard_path).expanduser())
        return cls(sink, min_interval_seconds=config.min_interval_seconds)

    def report(self, alerts: list[BudgetAlert]) -> bool:
        """
        Hand the most severe alert of a batch to the sink.

        Returns:
            True if the sink was invoked, False if throttled or empty.
        """
        if not alerts:
            return False

        now = self._clock()
        if self._last_sent is not None and now - self._last_sent < self.min_interval_seconds:
            logger.debug(
                f"Alert report throttled ({len(alerts)} alert(s), "
                f"{now - self._last_sent:.0f}s since last report)"
            )
            return False
        self._last_sent = now

        self._dispatch(alerts[-1].render())
        return True

    def __call__(self, alert: BudgetAlert) -> bool:
        return self.report([alert])

    def _dispatch(self, line: str) -> None:
        try:
            result = self.sink(line)
        except Exception as e:
            logger.warning(f"Alert sink failed: {e}")
            return

        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to fire into; finish it here
            try:
                asyncio.run(_await(result))
            except Exception as e:
                logger.warning(f"Alert sink failed: {e}")
            return

        task = loop.create_task(_await(result))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Alert sink failed: {exc}")

    async def drain(self) -> None:
        """Wait for in-flight async sink calls (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class MarkdownDashboardSink:
    """
    Keeps a single budget alert line at the top of a markdown file.

    An existing alert line is replaced in place; otherwise the line is
    inserted at the top. The file is created if missing.
    """

    def __init__(self, path: Path):
        self.path = path

    def __call__(self, line: str) -> None:
        lines: list[str] = []
        if self.path.exists():
            lines = self.path.read_text(encoding="utf-8").splitlines()

        for i, existing in enumerate(lines):
            if ALERT_MARKER in existing:
                lines[i] = line
                break
        else:
            lines[:0] = [line, ""]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info(f"Dashboard alert updated: {self.path}")
