"""
Debounced auto-save for answers in an open exam attempt.

Status moves through idle -> saving -> saved -> idle, or saving -> error
when a save fails. Each accepted answer change restarts the debounce
window, so a burst of edits becomes a single save of the snapshot taken
when the window closes.

One engine serves one attempt and never has two saves in flight. A
debounce that fires mid-save is coalesced: a fresh window starts when
the running save resolves. Navigating away from a question or
submitting the exam calls flush(), which saves immediately.

Scheduling goes through anything with ``call_later(delay, callback)``
returning a handle with ``cancel()``. The running asyncio loop is used
by default; tests pass a virtual clock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from .models import Question
from .validator import SelectionResult, validate_selection


class SaveStatus(str, Enum):
    """Human-visible auto-save status."""

    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    """Arm a one-shot callback; asyncio.AbstractEventLoop satisfies this."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


@dataclass(frozen=True)
class AnswerDraft:
    """Latest unsaved answer for one question."""

    question_id: str
    option_ids: tuple[str, ...]
    time_spent_seconds: int = 0


SaveCallable = Callable[[Mapping[str, AnswerDraft]], Awaitable[None]]


class AutoSaveEngine:
    """
    Debounce answer changes and drive save requests for one attempt.

    Args:
        save: Coroutine function persisting a snapshot {question_id: AnswerDraft}
        scheduler: Timer source (defaults to the running event loop)
        debounce_seconds: Quiet period after the last change before saving
        saved_display_seconds: How long SAVED is shown before IDLE
        on_status_change: Optional callback receiving each new status

    A change recorded while a save is running always gets its own debounce
    cycle, whether that save succeeds or fails; after a failure the cycle
    also carries the failed snapshot. A failure with no newer change waits
    for retry(), flush() or the next record_change().
    """

    def __init__(
        self,
        save: SaveCallable,
        scheduler: Scheduler | None = None,
        debounce_seconds: float = 2.0,
        saved_display_seconds: float = 2.0,
        on_status_change: Callable[[SaveStatus], None] | None = None,
    ):
        self._save = save
        self._scheduler = scheduler
        self.debounce_seconds = debounce_seconds
        self.saved_display_seconds = saved_display_seconds
        self._on_status_change = on_status_change

        self._status = SaveStatus.IDLE
        self._pending: dict[str, AnswerDraft] = {}
        self._debounce: TimerHandle | None = None
        self._revert: TimerHandle | None = None
        self._in_flight: asyncio.Task | None = None
        self._resave_requested = False
        self.last_error: BaseException | None = None
        self.save_count = 0

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending)

    @property
    def is_saving(self) -> bool:
        return self._in_flight is not None

    @property
    def pending(self) -> dict[str, AnswerDraft]:
        return dict(self._pending)

    def _set_status(self, status: SaveStatus) -> None:
        if status == self._status:
            return
        self._status = status
        if self._on_status_change is not None:
            self._on_status_change(status)

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def record_change(
        self,
        question: Question,
        option_ids: Sequence[str],
        time_spent_seconds: int = 0,
    ) -> SelectionResult:
        """
        Accept an answer change and restart the debounce window.

        Only complete selections (or an empty one, which clears the
        answer) are accepted. Anything else is returned unchanged and
        nothing is scheduled, so half-finished multi-select picks stay
        in the UI until they are complete.
        """
        selection = tuple(option_ids)
        if selection:
            result = validate_selection(question.required_selections, selection, question.option_ids)
            if result != SelectionResult.VALID:
                logger.debug("Auto-save skipped question {}: {}", question.id, result.value)
                return result

        self._pending[question.id] = AnswerDraft(
            question_id=question.id,
            option_ids=selection,
            time_spent_seconds=time_spent_seconds,
        )
        self._arm_debounce()
        return SelectionResult.VALID

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def _arm_debounce(self) -> None:
        self._cancel_debounce()
        self._debounce = self._get_scheduler().call_later(self.debounce_seconds, self._on_debounce)

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def _cancel_revert(self) -> None:
        if self._revert is not None:
            self._revert.cancel()
            self._revert = None

    def _on_debounce(self) -> None:
        self._debounce = None
        if self._in_flight is not None:
            self._resave_requested = True
            return
        self._dispatch()

    def _revert_to_idle(self) -> None:
        self._revert = None
        if self._status == SaveStatus.SAVED:
            self._set_status(SaveStatus.IDLE)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _dispatch(self) -> asyncio.Task | None:
        if not self._pending:
            return None
        snapshot = dict(self._pending)
        self._pending.clear()
        self._cancel_revert()
        self._set_status(SaveStatus.SAVING)
        self._in_flight = asyncio.get_running_loop().create_task(self._run_save(snapshot))
        return self._in_flight

    async def _run_save(self, snapshot: dict[str, AnswerDraft]) -> bool:
        ok = False
        try:
            await self._save(snapshot)
            ok = True
        except Exception as exc:  # Intentionally broad - failures surface as ERROR status, never raised
            # Keep the failed snapshot for retry; newer edits take precedence.
            for question_id, draft in snapshot.items():
                self._pending.setdefault(question_id, draft)
            self.last_error = exc
            logger.warning("Auto-save failed for {} question(s): {}", len(snapshot), exc)
            self._set_status(SaveStatus.ERROR)
        else:
            self.last_error = None
            self.save_count += 1
            logger.debug("Auto-saved {} question(s)", len(snapshot))
            self._set_status(SaveStatus.SAVED)
            self._revert = self._get_scheduler().call_later(self.saved_display_seconds, self._revert_to_idle)
        finally:
            self._in_flight = None
            if self._resave_requested:
                self._resave_requested = False
                if self._pending:
                    self._arm_debounce()
        return ok

    async def wait_idle(self) -> None:
        """Wait until no save is in flight."""
        while self._in_flight is not None:
            await self._in_flight

    async def flush(self) -> bool:
        """
        Save pending changes now, bypassing the debounce window.

        Used when navigating away from a question and before submitting.
        Waits for a running save first so requests never overlap.

        Returns:
            True if everything pending was saved (or nothing was pending).
        """
        await self.wait_idle()
        self._cancel_debounce()
        self._resave_requested = False
        task = self._dispatch()
        if task is None:
            return True
        return await task

    async def retry(self) -> bool:
        """Resubmit the snapshot retained from a failed save."""
        if self._pending:
            logger.info("Retrying auto-save of {} question(s)", len(self._pending))
        return await self.flush()

    def close(self) -> None:
        """Cancel timers. Pending changes are kept; call flush() first to save them."""
        self._cancel_debounce()
        self._cancel_revert()
