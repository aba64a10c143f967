"""
Agent Orchestrator - single-exchange conversation loop.

    Idle -> AwaitingSnapshot -> AwaitingResponse -> Dispatching -> Closed
                                                 -> Presenting -> Idle
    AwaitingResponse --(transport failure)--> Idle (error shown)

An answer containing ``<token>`` is an action: the token is resolved and
clicked, narration is halted and the loop closes without showing the
answer. Any other answer is narrated and displayed; it closes by itself
once BOTH the dwell time has elapsed AND narration has finished, provided
it is still the latest answer and nothing failed in between.
"""

import asyncio
import itertools
import logging
import re
from typing import Callable, Optional

from ..config import Settings
from ..core.exceptions import AgentBaseException, TransportFailure
from ..core.models import AgentExchange, ExchangeState
from ..infrastructure import Narrator, ReasoningClient, ScriptSurface
from ..page import ElementResolver, SnapshotSerializer

logger = logging.getLogger(__name__)

ACTION_TOKEN = re.compile(r"<([^<>]+)>")


def extract_action_token(answer: Optional[str]) -> Optional[str]:
    """
    Return the text of the first ``<...>`` group in ``answer``.

    Only the first group counts. Blank groups yield None.
    """
    match = ACTION_TOKEN.search(answer or "")
    if match is None:
        return None
    token = match.group(1).strip()
    return token or None


class AgentOrchestrator:
    """
    Runs one exchange at a time between the user, the page and the service.

    Collaborators are injected; the script surface is passed to each
    ``submit`` because the caller owns it and it may not exist yet.
    """

    def __init__(
        self,
        settings: Settings,
        reasoning: ReasoningClient,
        serializer: SnapshotSerializer,
        resolver: ElementResolver,
        narrator: Optional[Narrator] = None,
        on_change: Optional[Callable[["AgentOrchestrator"], None]] = None
    ):
        """
        Args:
            settings: Application configuration
            reasoning: Reasoning-service client
            serializer: Snapshot serializer
            resolver: Element resolver for action answers
            narrator: Speech collaborator; None disables narration
            on_change: Called after every state change (e.g. to redraw a UI)
        """
        self.settings = settings
        self.reasoning = reasoning
        self.serializer = serializer
        self.resolver = resolver
        self.narrator = narrator
        self.on_change = on_change

        self.state = ExchangeState.IDLE
        self.previous_answer = ""
        self.answer = ""
        self.error: Optional[str] = None
        self.current: Optional[AgentExchange] = None

        self._exchange_ids = itertools.count(1)
        self._exchange_id = 0
        self._inflight: Optional[asyncio.Task] = None
        self._auto_close: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    @property
    def input_enabled(self) -> bool:
        return self.state is ExchangeState.IDLE

    @property
    def closed(self) -> bool:
        return self.state is ExchangeState.CLOSED

    async def submit(
        self,
        user_prompt: str,
        surface: Optional[ScriptSurface] = None
    ) -> Optional[AgentExchange]:
        """
        Start an exchange and wait for it to settle.

        Args:
            user_prompt: What the user asked for
            surface: Page script surface used for the snapshot and actions

        Returns:
            The finished AgentExchange, or None if the submission was
            rejected (empty prompt, or not Idle)
        """
        prompt = (user_prompt or "").strip()
        if not prompt:
            return None
        if self.state is not ExchangeState.IDLE:
            logger.info(f"Submission ignored while {self.state.value}")
            return None

        exchange = AgentExchange(
            exchange_id=next(self._exchange_ids),
            user_prompt=prompt,
            previous_answer=self.previous_answer,
            system_instruction=self.settings.system_instruction,
        )
        self._exchange_id = exchange.exchange_id
        self.current = exchange
        self.error = None
        self._cancel_auto_close()
        self._set_state(ExchangeState.AWAITING_SNAPSHOT)

        self._inflight = asyncio.ensure_future(self._run_exchange(exchange, surface))
        try:
            await self._inflight
        except asyncio.CancelledError:
            if self.state is not ExchangeState.CLOSED:
                # Caller was cancelled, not us: leave the loop usable.
                self._set_state(ExchangeState.IDLE)
                raise
        except Exception:
            self._set_state(ExchangeState.IDLE)
            raise
        finally:
            self._inflight = None
        return exchange

    async def cancel(self) -> None:
        """Manual close: halt narration, drop pending auto-close, abort in-flight work."""
        if self.state is ExchangeState.CLOSED:
            return
        self._set_state(ExchangeState.CLOSED)
        self._cancel_auto_close()
        inflight = self._inflight
        if inflight is not None and not inflight.done() and inflight is not asyncio.current_task():
            inflight.cancel()
        await self._stop_narration()
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _run_exchange(self, exchange: AgentExchange, surface: Optional[ScriptSurface]) -> None:
        exchange.snapshot = await self.serializer.capture(surface)
        self._set_state(ExchangeState.AWAITING_RESPONSE)

        try:
            response = await self.reasoning.ask(exchange.to_request())
        except TransportFailure as e:
            exchange.error = self.error = e.message
            self._set_state(ExchangeState.IDLE)
            return

        exchange.answer = response.answer
        token = extract_action_token(response.answer)
        if token is not None:
            await self._dispatch(exchange, token, surface)
        else:
            self._present(exchange, response.answer)

    async def _dispatch(self, exchange: AgentExchange, token: str, surface: Optional[ScriptSurface]) -> None:
        self._set_state(ExchangeState.DISPATCHING)
        try:
            exchange.action = await self.resolver.resolve(token, surface)
        except AgentBaseException as e:
            logger.warning(f"Action '{token}' failed: {e}")
        await self._stop_narration()
        self._finish()

    def _present(self, exchange: AgentExchange, answer: str) -> None:
        self._set_state(ExchangeState.PRESENTING)
        speech_done = self._start_narration(answer)
        self.answer = answer
        self.previous_answer = answer
        self._auto_close = asyncio.ensure_future(
            self._auto_close_after(exchange.exchange_id, answer, speech_done)
        )
        self._set_state(ExchangeState.IDLE)

    def _start_narration(self, answer: str) -> Optional[asyncio.Future]:
        if self.narrator is None or not answer.strip():
            return None
        return asyncio.ensure_future(self.narrator.speak(answer))

    async def _auto_close_after(
        self,
        exchange_id: int,
        answer: str,
        speech_done: Optional[asyncio.Future]
    ) -> None:
        waiters = [asyncio.sleep(self.settings.dwell_seconds)]
        if speech_done is not None:
            waiters.append(self._await_narration(speech_done))
        await asyncio.gather(*waiters)

        if (
            exchange_id == self._exchange_id
            and self.answer == answer
            and self.error is None
            and self.state is ExchangeState.IDLE
        ):
            logger.debug(f"Auto-closing after exchange {exchange_id}")
            self._finish()

    async def _await_narration(self, speech_done: asyncio.Future) -> None:
        try:
            await asyncio.wait_for(
                asyncio.shield(speech_done),
                timeout=self.settings.narration_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Narration still running after {self.settings.narration_timeout}s")
            await self._stop_narration()
        except asyncio.CancelledError:
            if not speech_done.cancelled():
                raise
        except Exception as e:
            # A failed narration counts as finished.
            logger.warning(f"Narration failed: {e}")

    async def _stop_narration(self) -> None:
        if self.narrator is None:
            return
        try:
            await self.narrator.stop()
        except Exception as e:
            logger.warning(f"Failed to stop narration: {e}")

    def _cancel_auto_close(self) -> None:
        task = self._auto_close
        self._auto_close = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _finish(self) -> None:
        self._cancel_auto_close()
        self._set_state(ExchangeState.CLOSED)
        self._closed.set()

    def _set_state(self, state: ExchangeState) -> None:
        if state is self.state:
            return
        logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state
        if self.on_change is not None:
            self.on_change(self)
