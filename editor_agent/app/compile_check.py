"""CompileCheck: drives one check run through CheckFSM and returns a CheckOutcome.

Each state has a handler that does its network calls and waits, then returns the next
state (same shape as a daemon state loop). Network errors never leave the handlers: they
become a transition or a terminal outcome. Network calls run one at a time in a worker
thread so the loop only suspends on a request or a fixed delay.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from editor_agent.client.status_client import (
    BadStatus,
    MalformedResponse,
    ServerTimeout,
    ServerUnreachable,
    StatusClient,
)
from editor_agent.config.settings import get_client_config, get_server_config
from editor_agent.core.logging_utils import log_check_outcome, log_fsm_transition, new_trace_id
from editor_agent.core.models import CheckOutcome, OutcomeKind
from editor_agent.fsm.check_fsm import CheckFSM, CheckState

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _unreachable_outcome(exc: ServerUnreachable) -> CheckOutcome:
    if isinstance(exc, ServerTimeout):
        return CheckOutcome(OutcomeKind.TIMEOUT, detail=str(exc))
    return CheckOutcome(OutcomeKind.SERVER_UNREACHABLE, detail=str(exc))


def _fatal_outcome(exc: Exception) -> CheckOutcome:
    if isinstance(exc, BadStatus):
        return CheckOutcome(OutcomeKind.BAD_STATUS, detail=str(exc))
    return CheckOutcome(OutcomeKind.MALFORMED_RESPONSE, detail=str(exc))


class CompileCheck:
    """One check-and-report run. Fresh instance per invocation; nothing persists across runs."""

    def __init__(
        self,
        client: StatusClient,
        poll_interval_sec: float = 0.5,
        start_poll_attempts: int = 15,
        max_reconnect_failures: int = 30,
        settle_delay_sec: float = 1.0,
        sleep: Optional[Sleep] = None,
        trace_id: Optional[str] = None,
    ):
        self.client = client
        self.poll_interval_sec = poll_interval_sec
        self.start_poll_attempts = start_poll_attempts
        self.max_reconnect_failures = max_reconnect_failures
        self.settle_delay_sec = settle_delay_sec
        self._sleep: Sleep = sleep or asyncio.sleep
        self.trace_id = trace_id or new_trace_id()
        self._fsm = CheckFSM(on_transition=self._on_transition)
        self.reconnect_failures = 0
        self.outcome: Optional[CheckOutcome] = None

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "CompileCheck":
        """Build client + policy from the config 'client' and 'server' sections."""
        client_cfg = get_client_config(config)
        server_cfg = get_server_config(config)
        client = StatusClient(
            host=server_cfg["host"],
            port=server_cfg["port"],
            timeout=client_cfg["request_timeout_sec"],
        )
        return cls(
            client,
            poll_interval_sec=client_cfg["poll_interval_sec"],
            start_poll_attempts=client_cfg["start_poll_attempts"],
            max_reconnect_failures=client_cfg["max_reconnect_failures"],
            settle_delay_sec=client_cfg["settle_delay_sec"],
            **kwargs,
        )

    @property
    def state(self) -> CheckState:
        return self._fsm.current

    def _on_transition(self, from_state: CheckState, to_state: CheckState) -> None:
        log_fsm_transition(
            from_state.value,
            to_state.value,
            event="handler_return",
            trace_id=self.trace_id,
            extra={"reconnect_failures": self.reconnect_failures},
        )

    def _resolve(self, outcome: CheckOutcome) -> CheckState:
        self.outcome = outcome
        return CheckState.RESOLVED

    async def _call(self, fn: Callable[[], Any]) -> Any:
        return await asyncio.to_thread(fn)

    # --- State handlers: each runs its logic and returns the next state ---

    async def _handle_idle(self) -> CheckState:
        """IDLE: trigger a refresh. Any connection failure here means no server: fatal."""
        logger.info("[Check] state=IDLE | triggering refresh on %s", self.client.base_url)
        try:
            await self._call(self.client.refresh)
        except ServerUnreachable as e:
            logger.info("[Check] state=IDLE | refresh failed → RESOLVED (%s)", e)
            return self._resolve(_unreachable_outcome(e))
        except (MalformedResponse, BadStatus) as e:
            return self._resolve(_fatal_outcome(e))
        logger.info("[Check] state=IDLE → AWAITING_START (refresh acknowledged)")
        return CheckState.AWAITING_START

    async def _handle_awaiting_start(self) -> CheckState:
        """AWAITING_START: a compiling flag or a dropped connection both mean compilation began."""
        for attempt in range(1, self.start_poll_attempts + 1):
            try:
                compiling = await self._call(self.client.ping)
            except ServerUnreachable as e:
                logger.info(
                    "[Check] state=AWAITING_START | probe %s/%s dropped (%s) → COMPILING",
                    attempt,
                    self.start_poll_attempts,
                    e,
                )
                return CheckState.COMPILING
            except (MalformedResponse, BadStatus) as e:
                return self._resolve(_fatal_outcome(e))
            if compiling:
                logger.info(
                    "[Check] state=AWAITING_START | probe %s/%s isCompiling=true → COMPILING",
                    attempt,
                    self.start_poll_attempts,
                )
                return CheckState.COMPILING
            if attempt < self.start_poll_attempts:
                await self._sleep(self.poll_interval_sec)
        logger.info(
            "[Check] state=AWAITING_START | no compilation after %s probes → SETTLING",
            self.start_poll_attempts,
        )
        return CheckState.SETTLING

    async def _handle_compiling(self) -> CheckState:
        """COMPILING: stay while the flag is true; a drop means the runtime is reloading."""
        while True:
            await self._sleep(self.poll_interval_sec)
            try:
                compiling = await self._call(self.client.ping)
            except ServerUnreachable as e:
                self.reconnect_failures = 1
                logger.info("[Check] state=COMPILING | probe dropped (%s) → POSSIBLE_RELOAD", e)
                return CheckState.POSSIBLE_RELOAD
            except (MalformedResponse, BadStatus) as e:
                return self._resolve(_fatal_outcome(e))
            if not compiling:
                logger.info("[Check] state=COMPILING | isCompiling=false → SETTLING")
                return CheckState.SETTLING
            logger.debug("[Check] state=COMPILING | still compiling")

    async def _handle_possible_reload(self) -> CheckState:
        """POSSIBLE_RELOAD: the first successful reconnect proves the reload finished; its flag is ignored."""
        while True:
            await self._sleep(self.poll_interval_sec)
            try:
                compiling = await self._call(self.client.ping)
            except ServerUnreachable as e:
                self.reconnect_failures += 1
                if self.reconnect_failures > self.max_reconnect_failures:
                    logger.info(
                        "[Check] state=POSSIBLE_RELOAD | %s consecutive failures → RESOLVED (disconnected too long)",
                        self.reconnect_failures,
                    )
                    return self._resolve(
                        CheckOutcome(
                            OutcomeKind.DISCONNECTED_TOO_LONG,
                            detail=(
                                f"Status server unreachable for {self.reconnect_failures} consecutive probes "
                                f"(~{self.reconnect_failures * self.poll_interval_sec:.1f}s): {e}"
                            ),
                        )
                    )
                logger.debug(
                    "[Check] state=POSSIBLE_RELOAD | reconnect attempt failed (%s/%s)",
                    self.reconnect_failures,
                    self.max_reconnect_failures,
                )
                continue
            except (MalformedResponse, BadStatus) as e:
                return self._resolve(_fatal_outcome(e))
            logger.info(
                "[Check] state=POSSIBLE_RELOAD | reconnected after %s failure(s) (isCompiling=%s ignored) → SETTLING",
                self.reconnect_failures,
                compiling,
            )
            self.reconnect_failures = 0
            return CheckState.SETTLING

    async def _handle_settling(self) -> CheckState:
        """SETTLING: let the server's cache tick run at least once, then fetch the final snapshot."""
        logger.info("[Check] state=SETTLING | waiting %.1fs for error cache to refresh", self.settle_delay_sec)
        await self._sleep(self.settle_delay_sec)
        try:
            errors = await self._call(self.client.fetch_errors)
        except ServerUnreachable as e:
            return self._resolve(_unreachable_outcome(e))
        except (MalformedResponse, BadStatus) as e:
            return self._resolve(_fatal_outcome(e))
        return self._resolve(CheckOutcome.from_errors(errors))

    def _get_state_handlers(self) -> dict:
        """Map state -> async handler that returns next state."""
        return {
            CheckState.IDLE: self._handle_idle,
            CheckState.AWAITING_START: self._handle_awaiting_start,
            CheckState.COMPILING: self._handle_compiling,
            CheckState.POSSIBLE_RELOAD: self._handle_possible_reload,
            CheckState.SETTLING: self._handle_settling,
        }

    async def run(self) -> CheckOutcome:
        """State-driven loop: run handler for current state, transition to returned state."""
        handlers = self._get_state_handlers()
        while not self._fsm.is_resolved():
            current = self._fsm.current
            handler = handlers.get(current)
            if handler is None:
                logger.error("[Check] state=%s | no handler; resolving", current.value)
                self._fsm.force_resolve()
                break
            try:
                next_state = await handler()
            except Exception as e:
                logger.error("[Check] state=%s handler raised: %s", current.value, e)
                self.outcome = CheckOutcome(
                    OutcomeKind.INTERNAL_ERROR, detail=f"unexpected error in {current.value}: {e}"
                )
                self._fsm.force_resolve()
                break
            if not self._fsm.transition(next_state):
                logger.error("[Check] invalid transition %s → %s; resolving", current.value, next_state.value)
                self._fsm.force_resolve()
                break
        if self.outcome is None:
            self.outcome = CheckOutcome(OutcomeKind.INTERNAL_ERROR, detail="check ended without an outcome")
        log_check_outcome(self.outcome, trace_id=self.trace_id)
        return self.outcome


def run_check(config: Optional[Dict[str, Any]] = None) -> CheckOutcome:
    """Entry: run one check with policy from config."""
    return asyncio.run(CompileCheck.from_config(config).run())
