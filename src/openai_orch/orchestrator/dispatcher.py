"""
Dispatcher - Bounded-concurrency execution of submitted requests.

Runs an asyncio event loop on a background thread. Every work item becomes
one task that walks the retry/timeout state machine:

    PENDING -> IN_FLIGHT(0) -> RETRYING(1) -> IN_FLIGHT(1) -> ... -> SUCCEEDED | FAILED

A gate permit is held only while the capability call runs; backoff waits
happen without one.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from openai_orch.clients import close_loop_clients
from openai_orch.credentials import Credentials
from openai_orch.errors import (
    AttemptError,
    AttemptTimeout,
    CapabilityFailure,
    OrchestratorClosed,
    RequestCancelled,
)
from openai_orch.observability import (
    Counter,
    LogContext,
    MetricsRegistry,
    get_logger,
    get_metrics,
)
from openai_orch.orchestrator.gate import ConcurrencyGate
from openai_orch.orchestrator.ledger import (
    Failed,
    InFlight,
    RequestId,
    RequestLedger,
    Retrying,
    Succeeded,
)
from openai_orch.policies import Policies, backoff_delay
from openai_orch.requests.base import ExecutableRequest, timeout_hint_of
from openai_orch.vocabulary import RequestStatus


logger = get_logger("dispatcher")


@dataclass(frozen=True)
class WorkItem:
    """A request paired with its ledger id. Lives until the request settles."""
    request_id: RequestId
    request: ExecutableRequest
    submitted_at: float  # time.monotonic()


class Dispatcher:
    """
    Executes work items under the policies' concurrency, timeout and retry
    rules, writing every state change to the ledger.

    dispatch(), cancel() and shutdown() are safe to call from any thread.
    """

    def __init__(
        self,
        ledger: RequestLedger,
        policies: Policies,
        credentials: Credentials,
        metrics: MetricsRegistry | None = None,
    ):
        """
        Initialize dispatcher.

        Args:
            ledger: Shared request ledger (the dispatcher is its only mutator)
            policies: Validated policies
            credentials: Passed to every execute() call
            metrics: Registry to record into (defaults to the global one)
        """
        self.ledger = ledger
        self.policies = policies
        self.metrics = metrics or get_metrics()
        self._credentials = credentials
        self.gate = ConcurrencyGate(policies.max_concurrency)

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="openai-orch-dispatcher",
            daemon=True,
        )
        # Only touched on the loop thread
        self._tasks: dict[RequestId, asyncio.Task] = {}
        # Guards _started/_closed against concurrent dispatch and shutdown
        self._state_lock = threading.Lock()
        self._started = False
        self._closed = False
        # Set when the loop died under a BaseException raised outside a capability call
        self._fault: BaseException | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop thread. Idempotent."""
        with self._state_lock:
            if self._started:
                return
            self._started = True
        self._thread.start()
        logger.debug(
            "dispatcher started (max_concurrency=%d, max_retries=%d)",
            self.policies.max_concurrency,
            self.policies.max_retries,
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        except BaseException as e:
            self._recover(e)
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    def _recover(self, fault: BaseException) -> None:
        """Refuse new work and settle every open entry after the loop died."""
        logger.critical(
            "dispatcher loop stopped by %r; failing outstanding requests",
            fault,
            exc_info=(type(fault), fault, fault.__traceback__),
        )
        with self._state_lock:
            self._closed = True
            self._fault = fault
        self._loop.run_until_complete(self._shutdown(drain=False))

    def shutdown(self, *, drain: bool = False, timeout: float | None = None) -> None:
        """
        Stop accepting work and stop the loop thread.

        Args:
            drain: Wait for outstanding requests to settle instead of
                cancelling them
            timeout: Upper bound in seconds for draining and joining
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            started = self._started

        if not started:
            self._loop.close()
            return

        future = asyncio.run_coroutine_threadsafe(self._shutdown(drain), self._loop)
        try:
            future.result(timeout)
        except TimeoutError:
            logger.warning("dispatcher drain timed out; cancelling remaining work")
            future.cancel()
            try:
                asyncio.run_coroutine_threadsafe(
                    self._shutdown(drain=False), self._loop
                ).result(timeout)
            except TimeoutError:
                logger.error("requests ignored cancellation; abandoning them")
        finally:
            try:
                self._loop.call_soon_threadsafe(self._loop.stop)
            except RuntimeError:
                pass  # loop already closed by _recover
            self._thread.join(timeout)

        if self._thread.is_alive():
            logger.error("dispatcher thread did not stop within %ss", timeout)
        else:
            self._abandon_unsettled()

        logger.debug("dispatcher stopped")

    async def _shutdown(self, drain: bool) -> None:
        tasks = list(self._tasks.values())
        if not drain:
            for task in tasks:
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        # Let done callbacks settle cancelled entries
        await asyncio.sleep(0)
        await close_loop_clients(self._loop)

    def _abandon_unsettled(self) -> None:
        """Fail entries whose tasks outlived the loop. Only call once the thread exited."""
        for request_id in list(self._tasks):
            if not self.ledger.read(request_id).is_terminal:
                self.metrics.requests_cancelled.inc()
                self.ledger.transition(
                    request_id,
                    Failed(RequestCancelled("request abandoned at shutdown")),
                )
                logger.warning("request %s abandoned at shutdown", request_id)
        self._tasks.clear()

    # -------------------------------------------------------------------------
    # Thread-safe entry points
    # -------------------------------------------------------------------------

    def dispatch(self, work_item: WorkItem) -> None:
        """
        Hand a work item to the loop. Returns immediately.

        Items are admitted to the gate in the order they are dispatched.
        """
        with self._state_lock:
            if self._closed:
                raise OrchestratorClosed("dispatcher has been shut down")
            if not self._started:
                raise RuntimeError("dispatcher not started")
            try:
                self._loop.call_soon_threadsafe(self._spawn, work_item)
            except RuntimeError as e:
                raise OrchestratorClosed("dispatcher loop is not running") from e

    def cancel(self, request_id: RequestId, timeout: float | None = None) -> bool:
        """
        Cancel an unsettled request.

        Returns True if a running task was cancelled. The entry settles
        FAILED(RequestCancelled) once the task unwinds.
        """
        with self._state_lock:
            if self._closed or not self._started:
                return False
            future = asyncio.run_coroutine_threadsafe(
                self._cancel(request_id), self._loop
            )
        return future.result(timeout)

    async def _cancel(self, request_id: RequestId) -> bool:
        task = self._tasks.get(request_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    # -------------------------------------------------------------------------
    # Loop-side machinery
    # -------------------------------------------------------------------------

    def _spawn(self, work_item: WorkItem) -> None:
        task = self._loop.create_task(
            self._run(work_item),
            name=f"request-{work_item.request_id}",
        )
        self._tasks[work_item.request_id] = task
        task.add_done_callback(lambda t: self._on_done(work_item, t))

    def _on_done(self, work_item: WorkItem, task: asyncio.Task) -> None:
        """Settle entries whose task did not reach a terminal state itself."""
        request_id = work_item.request_id
        self._tasks.pop(request_id, None)

        if task.cancelled():
            if self._fault is not None:
                error = CapabilityFailure(f"dispatcher stopped: {self._fault!r}")
                error.__cause__ = self._fault
                if self._settle_if_open(work_item, error, self.metrics.requests_failed):
                    logger.error(
                        "request %s failed: dispatcher stopped",
                        request_id,
                        extra={"request_id": str(request_id), "status": RequestStatus.FAILED},
                    )
            elif self._settle_if_open(
                work_item,
                RequestCancelled("request cancelled"),
                self.metrics.requests_cancelled,
            ):
                logger.info(
                    "request %s cancelled",
                    request_id,
                    extra={"request_id": str(request_id), "status": RequestStatus.FAILED},
                )
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                "request %s crashed in dispatcher",
                request_id,
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"request_id": str(request_id), "status": RequestStatus.FAILED},
            )
            error = CapabilityFailure(f"dispatcher fault: {exc!r}")
            error.__cause__ = exc
            self._settle_if_open(work_item, error, self.metrics.requests_failed)

    def _settle_if_open(
        self, work_item: WorkItem, error: AttemptError, counter: Counter
    ) -> bool:
        # Single mutator: nothing can settle the entry between read and write
        entry = self.ledger.read(work_item.request_id)
        if entry.is_terminal:
            return False
        counter.inc()
        self._observe_duration(work_item)
        self.ledger.transition(work_item.request_id, Failed(error))
        return True

    async def _run(self, work_item: WorkItem) -> None:
        """Drive one work item to a terminal state."""
        request_id = work_item.request_id
        max_retries = self.policies.max_retries
        attempt = 0

        with LogContext(request_id) as log_context:
            while True:
                log_context.set_attempt(attempt)
                async with self.gate:
                    self.ledger.transition(request_id, InFlight(attempt))
                    try:
                        payload = await self._attempt(work_item, attempt)
                    except AttemptError as e:
                        error = e
                    else:
                        self.metrics.requests_succeeded.inc()
                        self._observe_duration(work_item)
                        self.ledger.transition(request_id, Succeeded(payload))
                        logger.info(
                            "request %s succeeded on attempt %d",
                            request_id,
                            attempt,
                            extra={"status": RequestStatus.SUCCEEDED},
                        )
                        return

                # Permit released: failure handling never blocks other work
                if attempt >= max_retries:
                    self.metrics.requests_failed.inc()
                    self._observe_duration(work_item)
                    self.ledger.transition(request_id, Failed(error))
                    logger.error(
                        "request %s reached max retry (%d attempts): %s",
                        request_id,
                        attempt + 1,
                        error,
                        extra={"status": RequestStatus.FAILED},
                    )
                    return

                delay = backoff_delay(self.policies.backoff, attempt)
                self.metrics.retries_total.inc()
                self.ledger.transition(
                    request_id,
                    Retrying(
                        attempt=attempt + 1,
                        next_attempt_at=datetime.now() + timedelta(seconds=delay),
                        error=error,
                    ),
                )
                logger.warning(
                    "request %s attempt %d failed (%s), retrying in %.2fs",
                    request_id,
                    attempt,
                    error,
                    delay,
                    extra={"status": RequestStatus.RETRYING},
                )
                await _sleep_at_least(delay)
                attempt += 1

    async def _attempt(self, work_item: WorkItem, attempt: int) -> Any:
        """
        One capability call under the attempt deadline.

        Raises:
            AttemptTimeout: the deadline elapsed
            CapabilityFailure: execute() failed (anything it raises other than
                cancellation is wrapped, SystemExit included)
        """
        deadline = self._attempt_timeout(work_item.request)
        logger.debug(
            "starting request %s attempt %d (timeout %.2fs)",
            work_item.request_id,
            attempt,
            deadline,
            extra={"status": RequestStatus.IN_FLIGHT},
        )
        self.metrics.attempts_total.inc()
        self.metrics.in_flight.inc()
        started = time.monotonic()
        try:
            async with asyncio.timeout(deadline) as scope:
                return await work_item.request.execute(self._credentials)
        except TimeoutError as e:
            self.metrics.attempt_failures.inc()
            if scope.expired():
                self.metrics.attempt_timeouts.inc()
                raise AttemptTimeout(deadline) from e
            raise CapabilityFailure(f"capability timed out: {e}") from e
        except CapabilityFailure:
            self.metrics.attempt_failures.inc()
            raise
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            self.metrics.attempt_failures.inc()
            raise CapabilityFailure(f"{type(e).__name__}: {e}") from e
        finally:
            self.metrics.in_flight.dec()
            self.metrics.attempt_latency_seconds.observe(time.monotonic() - started)

    def _attempt_timeout(self, request: ExecutableRequest) -> float:
        limit = self.policies.per_attempt_timeout
        hint = timeout_hint_of(request)
        if hint is None:
            return limit
        return min(hint, limit)

    def _observe_duration(self, work_item: WorkItem) -> None:
        self.metrics.request_duration_seconds.observe(
            time.monotonic() - work_item.submitted_at
        )


async def _sleep_at_least(delay: float) -> None:
    """Sleep for no less than `delay` seconds of monotonic time."""
    if delay <= 0:
        await asyncio.sleep(0)
        return
    deadline = time.monotonic() + delay
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return
        await asyncio.sleep(remaining)


def create_dispatcher(
    ledger: RequestLedger,
    policies: Policies,
    credentials: Credentials,
    metrics: MetricsRegistry | None = None,
    start: bool = True,
) -> Dispatcher:
    """Factory for dispatcher."""
    dispatcher = Dispatcher(
        ledger=ledger,
        policies=policies,
        credentials=credentials,
        metrics=metrics,
    )
    if start:
        dispatcher.start()
    return dispatcher
