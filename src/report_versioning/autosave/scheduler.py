"""
Auto-save scheduling on the asyncio event loop.

Two triggers persist the editor's current content as auto-save versions:

- a debounce timer, re-armed on every content change, that fires once the
  content has been quiet for ``debounce_ms``
- an interval timer firing every ``interval_ms`` that saves when the content
  has drifted from what was last persisted

Everything runs on one event loop; there are no threads. Saves issued by one
scheduler are serialized by a lock so the read-then-increment of
``version_number`` never overlaps with itself, and automatic triggers that
fire while an automatic save is in flight are coalesced into one follow-up
check. Debounce re-arming never waits for a save to complete.

Independent schedulers writing the same report are not coordinated (single
writer assumption, see VersionStore).
"""

import asyncio
from typing import Callable, Optional

import structlog

from ..config import settings
from ..exceptions import ReportVersioningError
from ..history.queries import now_ms
from ..history.service import VersionHistory
from ..models.version import ForensicContext, ReportVersion, VersionAuthor
from ..storage.version_store import VersionStore

logger = structlog.get_logger(__name__)

AUTO_SAVE_DESCRIPTION = "Auto-saved version"


class AutoSaveScheduler:
    """
    Debounced and periodic auto-save for one report.

    State machine over active/paused. ``manual_save`` works in both states.

    Args:
        store: Version store to write to
        report_id: Report being edited
        author: Attribution recorded on every version
        initial_content: Content already persisted (not auto-saved again)
        debounce_ms: Quiet period before a change is saved
        interval_ms: Period of the drift check
        forensic_context: Case metadata attached to new versions
        on_error: Called with the exception when an auto-save fails

    Usage:
        >>> async with AutoSaveScheduler(store, "incident-3167", author) as scheduler:
        ...     scheduler.update_content(html)
        ...     await scheduler.manual_save("Added IOC table")
    """

    def __init__(
        self,
        store: VersionStore,
        report_id: str,
        author: VersionAuthor,
        initial_content: str = "",
        debounce_ms: Optional[int] = None,
        interval_ms: Optional[int] = None,
        forensic_context: Optional[ForensicContext] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.store = store
        self.report_id = report_id
        self.history = VersionHistory(store, report_id)
        self.author = author
        self.debounce_ms = debounce_ms if debounce_ms is not None else settings.autosave_debounce_ms
        self.interval_ms = interval_ms if interval_ms is not None else settings.autosave_interval_ms
        self.forensic_context = forensic_context
        self.on_error = on_error

        self.current_content = initial_content or ""
        self.last_saved_content = self.current_content
        self.last_save_time: Optional[int] = None
        self.is_saving = False

        self._paused = False
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._interval_task: Optional[asyncio.Task] = None
        self._auto_save_task: Optional[asyncio.Task] = None
        self._rerun_requested = False
        self._save_lock = asyncio.Lock()

        self.logger = logger.bind(report_id=report_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_paused(self) -> bool:
        return self._paused

    def start(self) -> None:
        """Arm the interval timer. Must be called from a running event loop."""
        if not self._paused:
            self._start_interval()
        self.logger.debug(
            "autosave_started", debounce_ms=self.debounce_ms, interval_ms=self.interval_ms
        )

    def stop(self) -> None:
        """Cancel pending timers (an in-flight save keeps running)."""
        self._cancel_timers()
        self.logger.debug("autosave_stopped")

    async def aclose(self) -> None:
        """Cancel timers and wait for an in-flight automatic save."""
        self.stop()
        if self._auto_save_task is not None and not self._auto_save_task.done():
            await self._auto_save_task

    async def __aenter__(self) -> "AutoSaveScheduler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def update_content(self, html: str) -> None:
        """
        Record a content change from the editor.

        While active, a change that differs from the last persisted content
        (re)arms the debounce timer.
        """
        self.current_content = html or ""
        if self._paused:
            return

        if self.current_content == self.last_saved_content:
            self._cancel_debounce()
            return

        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce_ms / 1000, self._on_debounce)

    def pause_auto_save(self) -> None:
        """Stop automatic saves; pending timers are cancelled."""
        self._paused = True
        self._cancel_timers()
        self.logger.info("autosave_paused")

    def resume_auto_save(self) -> None:
        """Resume automatic saves; the debounce re-arms on the next change."""
        if not self._paused:
            return
        self._paused = False
        self._start_interval()
        self.logger.info("autosave_resumed")

    async def manual_save(
        self, description: str, forensic_context: Optional[ForensicContext] = None
    ) -> ReportVersion:
        """
        Persist the current content immediately as a manual version.

        Records the user's intent even when the content is unchanged since the
        last save.

        Raises:
            StorageWriteError: The version could not be written
        """
        try:
            return await self._save(
                self.current_content,
                description=description,
                is_auto_save=False,
                forensic_context=forensic_context,
            )
        except ReportVersioningError as e:
            self.logger.error("manual_save_failed", error=str(e), error_type=type(e).__name__)
            raise

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _on_debounce(self) -> None:
        self._debounce_handle = None
        self._trigger_auto_save()

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            if self.current_content != self.last_saved_content:
                self._trigger_auto_save()

    def _start_interval(self) -> None:
        if self._interval_task is None or self._interval_task.done():
            self._interval_task = asyncio.get_running_loop().create_task(self._interval_loop())

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _cancel_timers(self) -> None:
        self._cancel_debounce()
        if self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _trigger_auto_save(self) -> None:
        """Start an automatic save, or coalesce into the one in flight."""
        if self._auto_save_task is not None and not self._auto_save_task.done():
            self._rerun_requested = True
            return
        self._auto_save_task = asyncio.get_running_loop().create_task(self._run_auto_save())

    async def _run_auto_save(self) -> None:
        while True:
            self._rerun_requested = False
            await self._auto_save_once()
            if not self._rerun_requested:
                return

    async def _auto_save_once(self) -> None:
        content = self.current_content
        if not content or content == self.last_saved_content:
            return

        try:
            await self._save(content, description=AUTO_SAVE_DESCRIPTION, is_auto_save=True)
        except ReportVersioningError as e:
            # Retried on the next interval tick; the in-memory content is kept
            self.logger.error("auto_save_failed", error=str(e), error_type=type(e).__name__)
            if self.on_error is not None:
                self.on_error(e)

    async def _save(
        self,
        content: str,
        description: str,
        is_auto_save: bool,
        forensic_context: Optional[ForensicContext] = None,
    ) -> ReportVersion:
        async with self._save_lock:
            self.is_saving = True
            try:
                stored = self.history.create_version(
                    content,
                    self.author,
                    description=description,
                    is_auto_save=is_auto_save,
                    forensic_context=forensic_context or self.forensic_context,
                )

                self.last_saved_content = content
                self.last_save_time = now_ms()
                self.logger.info(
                    "autosave_version_persisted" if is_auto_save else "manual_version_persisted",
                    version_number=stored.version_number,
                )
                return stored
            finally:
                self.is_saving = False
