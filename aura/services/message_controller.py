"""
Adaptive message controller.

Owns the lifecycle of at most one enrichment call:
- One optional debounce timer (an event-loop `TimerHandle`)
- One optional in-flight call (an `asyncio.Task` plus a cooperative token)

Every supersession path (`request`, `force_request`, `stop_all`) releases
both resources through the same two helpers, so a new call always cancels its
predecessor before starting. Cancellation is cooperative: the token is
checked after the call returns, which suppresses delivery even when the
network layer finishes the request anyway.

All state lives on one event loop and is mutated only from it, so no locks
are involved.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from aura.config import EnrichmentConfig
from aura.domain.models import ControllerStatus, GeneratedMessages, MessageContext

logger = structlog.get_logger(__name__)

ResultCallback = Callable[[GeneratedMessages], Awaitable[None] | None]
ErrorCallback = Callable[[Exception], Awaitable[None] | None]


class MessageGenerator(Protocol):
    """Anything that can turn a context into generated messages."""

    async def generate(self, ctx: MessageContext, config: EnrichmentConfig) -> GeneratedMessages:
        ...


class CancellationToken:
    """Flag checked before delivering a result."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class InflightCall:
    """The single call currently allowed to deliver."""

    call_id: int
    token: CancellationToken
    task: asyncio.Task[None] | None = field(default=None)


class MessageController:
    """
    Debounce, supersede and cancel enrichment calls.

    Design principles:
    - At most one call in flight; a new one always cancels the previous first
    - Cancelled calls never invoke a callback, whatever order tasks finish in
    - Failures are recoverable: status becomes `error` and `on_error` is told
    """

    def __init__(self, generator: MessageGenerator, debounce_seconds: float = 0.6) -> None:
        self.generator = generator
        self.debounce_seconds = debounce_seconds
        self.logger = logger.bind(component="message_controller")

        self._timer: asyncio.TimerHandle | None = None
        self._inflight: InflightCall | None = None
        self._status = ControllerStatus.IDLE
        self._completed_calls = 0
        self._issued_calls = 0

    @property
    def status(self) -> ControllerStatus:
        return self._status

    @property
    def call_count(self) -> int:
        """Calls that completed successfully and were delivered."""
        return self._completed_calls

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def has_inflight(self) -> bool:
        return self._inflight is not None

    def request(
        self,
        ctx: MessageContext,
        config: EnrichmentConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Schedule a call after the debounce delay, superseding anything pending."""
        self._clear_timer()
        self._abort_inflight()

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self.debounce_seconds, self._fire, ctx, config, on_result, on_error
        )
        self.logger.debug(
            "enrichment_request_scheduled",
            debounce_seconds=self.debounce_seconds,
            level=int(ctx.intervention_level),
        )

    def force_request(
        self,
        ctx: MessageContext,
        config: EnrichmentConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Issue a call immediately, cancelling any pending timer and in-flight call."""
        self._clear_timer()
        self._execute(ctx, config, on_result, on_error)

    def stop_all(self) -> None:
        """Cancel the timer and the in-flight call; no callback fires afterwards."""
        had_work = self._timer is not None or self._inflight is not None
        self._clear_timer()
        self._abort_inflight()
        self._status = ControllerStatus.IDLE
        if had_work:
            self.logger.info("enrichment_stopped")

    async def join(self) -> None:
        """Wait until no timer is pending and no call is in flight."""
        while self._timer is not None or self._inflight is not None:
            inflight = self._inflight
            if inflight is not None and inflight.task is not None:
                await asyncio.wait({inflight.task})
                if self._inflight is inflight:
                    self._inflight = None
            else:
                await asyncio.sleep(max(self.debounce_seconds / 4, 0.001))

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _abort_inflight(self) -> None:
        if self._inflight is None:
            return
        inflight = self._inflight
        self._inflight = None
        inflight.token.cancel()
        if inflight.task is not None and not inflight.task.done():
            inflight.task.cancel()
        self.logger.debug("enrichment_call_superseded", call_id=inflight.call_id)

    def _fire(
        self,
        ctx: MessageContext,
        config: EnrichmentConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._timer = None
        self._execute(ctx, config, on_result, on_error)

    def _execute(
        self,
        ctx: MessageContext,
        config: EnrichmentConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._abort_inflight()

        self._issued_calls += 1
        inflight = InflightCall(call_id=self._issued_calls, token=CancellationToken())
        self._inflight = inflight
        self._status = ControllerStatus.GENERATING

        inflight.task = asyncio.get_running_loop().create_task(
            self._run(inflight, ctx, config, on_result, on_error),
            name=f"enrichment-call-{inflight.call_id}",
        )

    def _release(self, inflight: InflightCall) -> None:
        if self._inflight is inflight:
            self._inflight = None

    async def _run(
        self,
        inflight: InflightCall,
        ctx: MessageContext,
        config: EnrichmentConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> None:
        token = inflight.token
        try:
            messages = await self.generator.generate(ctx, config)
        except asyncio.CancelledError:
            self.logger.debug("enrichment_call_cancelled", call_id=inflight.call_id)
            raise
        except Exception as e:
            if token.cancelled:
                # A superseded call failing on its way out is not an error
                return
            self._release(inflight)
            self._status = ControllerStatus.ERROR
            self.logger.error("enrichment_call_failed", call_id=inflight.call_id, error=str(e))
            await self._dispatch(on_error, e)
            return

        if token.cancelled:
            self.logger.debug("enrichment_stale_result_discarded", call_id=inflight.call_id)
            return

        self._release(inflight)
        self._completed_calls += 1
        self._status = ControllerStatus.IDLE
        self.logger.info(
            "enrichment_delivered", call_id=inflight.call_id, completed=self._completed_calls
        )
        await self._dispatch(on_result, messages)

    async def _dispatch(self, callback: Callable[[Any], Any], payload: Any) -> None:
        try:
            outcome = callback(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.error("enrichment_callback_failed", error=str(e))
