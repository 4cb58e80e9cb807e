"""Timer session service for the live reading-timer screen."""

import asyncio
import logging
import uuid
from typing import Optional

from ..clock import Clock, utc_now
from ..entities.book import Book
from ..entities.events import (
    BackEvent,
    CloseEvent,
    DiscardEvent,
    FinishTimerEvent,
    InboundEvent,
    PauseTimerEvent,
    ResumeEvent,
    StartTimerEvent,
    SubmitEvent,
    SuspendEvent,
)
from ..entities.messages import (
    ConfirmDiscardMessage,
    ErrorOutMessage,
    NoticeMessage,
    OutboundMessage,
    SessionEndedMessage,
    SessionReadyMessage,
    SessionRecordedMessage,
    TimerUpdateMessage,
)
from ..entities.reading_session import SessionDraft, SessionStage
from ..entities.session_context import SessionContext
from ..entities.websocket_messages import ErrorCode
from ..errors import (
    BackendError,
    MissingPrerequisiteError,
    SessionValidationError,
    SubmissionInProgressError,
)
from .elapsed_time_tracker import ElapsedTimeTracker
from .session_submission import SessionSubmissionService

logger = logging.getLogger(__name__)


class TimerSessionService:
    """
    Per-connection service that owns one reading timer.

    This service owns:
    - The elapsed-time tracker (no other component touches it)
    - The repeating tick task driving ``tracker.tick()``
    - The timer → reflection → submitted flow and the discard confirmation
    - Emitting events to the WebSocket layer via async queue

    Submissions run as their own task so that a second submit arriving
    while the first is outstanding is refused instead of queued.

    The service is unit-testable without sockets.
    """

    def __init__(
        self,
        context: SessionContext,
        book: Book,
        submission: SessionSubmissionService,
        clock: Clock = utc_now,
        tick_interval: float = 1.0,
    ):
        self.id = str(uuid.uuid4())
        self.context = context
        self.book = book
        self.submission = submission
        self.tick_interval = tick_interval
        self.tracker = ElapsedTimeTracker(clock)
        self.stage = SessionStage.TIMER

        # Asyncio queues for communication
        self.inbound_queue: asyncio.Queue[InboundEvent] = asyncio.Queue()
        self.outbound_queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()

        # Service state
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._submit_tasks: set[asyncio.Task] = set()

        logger.info(f"TimerSessionService created for user {context.user_id}, book {book.id}")

    @property
    def minimum_session_seconds(self) -> int:
        return self.submission.minimum_session_seconds

    @property
    def can_finish(self) -> bool:
        return self.tracker.accumulated_seconds >= self.minimum_session_seconds

    async def start(self):
        """Start the event loop and the tick task, then emit session ready."""
        if self._running:
            logger.warning(f"Timer session {self.id} already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._process_inbound_events())
        self._tick_task = asyncio.create_task(self._tick_loop())

        await self.outbound_queue.put(
            SessionReadyMessage(
                session_id=self.id,
                book_id=self.book.id,
                book_title=self.book.title,
                book_format=self.book.format.value,
                current_unit=self.book.current_unit,
            )
        )
        await self._emit_timer_update()

        logger.info(f"Timer session {self.id} started")

    async def stop(self):
        """Stop the event loop and the tick task."""
        if not self._running:
            return

        self._running = False
        self.tracker.pause()

        current = asyncio.current_task()
        for task in (self._tick_task, self._task):
            if task and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        logger.info(f"Timer session {self.id} stopped at {self.tracker.accumulated_seconds}s")

    async def _tick_loop(self):
        """Drive the tracker once per tick interval."""
        while self._running:
            await asyncio.sleep(self.tick_interval)
            if self.tracker.is_running and not self.tracker.is_suspended:
                self.tracker.tick()
                await self._emit_timer_update()

    async def _process_inbound_events(self):
        """Main event processing loop."""
        logger.info(f"Event processing started for timer session {self.id}")

        try:
            while self._running:
                try:
                    event = await asyncio.wait_for(self.inbound_queue.get(), timeout=1.0)
                    await self._handle_event(event)
                except asyncio.TimeoutError:
                    continue
                except Exception as e:
                    logger.error(f"Error processing event: {e}", exc_info=True)
                    await self._emit_error(ErrorCode.INTERNAL_ERROR, f"Internal processing error: {str(e)}")
        finally:
            logger.info(f"Event processing ended for timer session {self.id}")

    async def _handle_event(self, event: InboundEvent):
        """Route event to appropriate handler based on type."""
        if isinstance(event, StartTimerEvent):
            await self._handle_start_timer()
        elif isinstance(event, PauseTimerEvent):
            await self._handle_pause_timer()
        elif isinstance(event, SuspendEvent):
            self.tracker.on_suspend()
        elif isinstance(event, ResumeEvent):
            await self._handle_resume()
        elif isinstance(event, FinishTimerEvent):
            await self._handle_finish()
        elif isinstance(event, BackEvent):
            await self._handle_back()
        elif isinstance(event, DiscardEvent):
            await self._handle_discard()
        elif isinstance(event, SubmitEvent):
            await self._handle_submit(event)
        elif isinstance(event, CloseEvent):
            await self._handle_close()
        else:
            logger.warning(f"Unknown event type: {type(event)}")

    # ===== Event Handlers =====

    async def _handle_start_timer(self):
        if self.stage != SessionStage.TIMER:
            await self._emit_notice("The timer can only be started before finishing the session.")
            return
        self.tracker.start()
        await self._emit_timer_update()

    async def _handle_pause_timer(self):
        self.tracker.pause()
        await self._emit_timer_update()

    async def _handle_resume(self):
        credited = self.tracker.on_resume()
        if credited:
            logger.info(f"Timer session {self.id}: credited {credited}s spent in background")
        await self._emit_timer_update()

    async def _handle_finish(self):
        if self.stage != SessionStage.TIMER:
            return
        if not self.can_finish:
            await self._emit_notice(
                f"Read for at least {self.minimum_session_seconds // 60} minute(s) to finish."
            )
            return
        self.tracker.pause()
        self.stage = SessionStage.REFLECTION
        await self._emit_timer_update()

    async def _handle_back(self):
        """Back steps out of reflection, asks before dropping time, or leaves."""
        if self.stage == SessionStage.SUBMITTING:
            await self._emit_notice("Your session is being saved. Please wait.")
        elif self.stage == SessionStage.REFLECTION:
            self.stage = SessionStage.TIMER
            await self._emit_timer_update()
        elif self.tracker.accumulated_seconds > 0:
            await self.outbound_queue.put(ConfirmDiscardMessage())
        else:
            await self._end("closed")

    async def _handle_discard(self):
        if self.stage == SessionStage.SUBMITTING:
            await self._emit_notice("Your session is being saved. Please wait.")
            return
        if self.stage in (SessionStage.RECORDED, SessionStage.DISCARDED):
            return
        await self._end("discarded")

    async def _handle_submit(self, event: SubmitEvent):
        if self.stage == SessionStage.SUBMITTING:
            await self._emit_error(ErrorCode.SUBMISSION_IN_PROGRESS, "A session is already being saved.")
            return
        if self.stage != SessionStage.REFLECTION:
            await self._emit_notice("Finish the session before claiming rewards.")
            return

        draft = SessionDraft(
            book_id=self.book.id,
            duration_seconds=self.tracker.accumulated_seconds,
            reflection=event.reflection,
            start_unit=event.start_unit,
            end_unit=event.end_unit,
            finished=event.finished,
        )
        self.stage = SessionStage.SUBMITTING
        task = asyncio.create_task(self._submit(draft))
        self._submit_tasks.add(task)
        task.add_done_callback(self._submit_tasks.discard)

    async def _submit(self, draft: SessionDraft):
        try:
            result = await self.submission.submit(self.context, draft)
        except SubmissionInProgressError as e:
            self.stage = SessionStage.REFLECTION
            await self._emit_error(ErrorCode.SUBMISSION_IN_PROGRESS, str(e))
            return
        except SessionValidationError as e:
            self.stage = SessionStage.REFLECTION
            await self._emit_error(ErrorCode.VALIDATION_FAILED, str(e))
            return
        except MissingPrerequisiteError as e:
            self.stage = SessionStage.REFLECTION
            await self._emit_error(ErrorCode.MISSING_PREREQUISITE, e.message, redirect=e.redirect)
            return
        except BackendError as e:
            logger.error(f"Timer session {self.id}: backend rejected submission: {e.message}")
            self.stage = SessionStage.REFLECTION
            await self._emit_error(ErrorCode.BACKEND_ERROR, e.message)
            return

        self.stage = SessionStage.RECORDED
        await self.outbound_queue.put(
            SessionRecordedMessage(
                ink_gained=result.ink_gained,
                xp_gained=result.xp_gained,
                units_read=result.units_read,
                new_book_unit=result.new_book_unit,
                new_book_status=result.new_book_status.value if result.new_book_status else None,
                message=result.message,
            )
        )
        await self._end("recorded")

    async def _handle_close(self):
        """Handle session close."""
        logger.info(f"Closing timer session {self.id}")
        await self.stop()

    async def _end(self, reason: str):
        elapsed = self.tracker.accumulated_seconds
        if reason == "discarded":
            self.stage = SessionStage.DISCARDED
            self.tracker.reset()
        await self.outbound_queue.put(SessionEndedMessage(reason=reason, elapsed_seconds=elapsed))
        await self.stop()

    # ===== Public API methods (called by WebSocket handler) =====

    async def start_timer(self):
        await self.inbound_queue.put(StartTimerEvent())

    async def pause_timer(self):
        await self.inbound_queue.put(PauseTimerEvent())

    async def suspend(self):
        """The app went to the background."""
        await self.inbound_queue.put(SuspendEvent())

    async def resume(self):
        """The app came back to the foreground."""
        await self.inbound_queue.put(ResumeEvent())

    async def finish(self):
        await self.inbound_queue.put(FinishTimerEvent())

    async def back(self):
        await self.inbound_queue.put(BackEvent())

    async def discard(self):
        await self.inbound_queue.put(DiscardEvent())

    async def submit(
        self,
        reflection: str = "",
        end_unit: Optional[int] = None,
        start_unit: Optional[int] = None,
        finished: bool = False,
    ):
        """
        Submit the finished session.

        Args:
            reflection: Free-text reflection
            end_unit: Page reached (physical books)
            start_unit: Page started on, defaults to the book's progress
            finished: Mark the book finished
        """
        await self.inbound_queue.put(SubmitEvent(reflection, end_unit, start_unit, finished))

    async def close(self):
        """Close the timer session."""
        await self.inbound_queue.put(CloseEvent())

    # ===== Outbound message helpers =====

    async def _emit_timer_update(self):
        await self.outbound_queue.put(
            TimerUpdateMessage(
                elapsed_seconds=self.tracker.accumulated_seconds,
                running=self.tracker.is_running,
                stage=self.stage.value,
                can_finish=self.can_finish,
            )
        )

    async def _emit_notice(self, text: str):
        await self.outbound_queue.put(NoticeMessage(text))

    async def _emit_error(self, code: ErrorCode, text: str, redirect: Optional[str] = None):
        await self.outbound_queue.put(ErrorOutMessage(code, text, redirect))

    def get_session_state(self) -> dict:
        """Get the current timer state as a dictionary."""
        return {
            "session_id": self.id,
            "user_id": self.context.user_id,
            "book_id": self.book.id,
            "stage": self.stage.value,
            "elapsed_seconds": self.tracker.accumulated_seconds,
            "running": self.tracker.is_running,
            "suspended": self.tracker.is_suspended,
            "submitting": self.submission.is_submitting,
        }
