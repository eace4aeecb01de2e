"""
Portal Context
--------------
Secondary side of the sync channel.

INIT -> HANDSHAKING -> SYNCED -> CLOSED, or HANDSHAKING -> FAILED.
While handshaking the portal repeats READY on a fixed interval until a
STATE_UPDATE arrives or the deadline passes. FAILED is terminal: the portal
stops announcing itself and must be recreated.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sync.channel import BroadcastChannel
from sync.messages import (
    MESSAGE_TYPES,
    ActionRequest,
    ActionResponse,
    PortalClosing,
    PortalReady,
    StateUpdate,
    dump_message,
    parse_message,
)
from ui.provider import PortalView

logger = logging.getLogger(__name__)


class PortalState(str, Enum):
    INIT = "INIT"
    HANDSHAKING = "HANDSHAKING"
    SYNCED = "SYNCED"
    FAILED = "FAILED"
    CLOSED = "CLOSED"


class SyncTimeout(Exception):
    pass


@dataclass
class HandshakeConfig:
    interval: float = 0.1
    timeout: float = 3.0
    # None waits for ACTION_RESPONSE indefinitely.
    action_timeout: Optional[float] = None


@dataclass
class PortalSession:
    is_acknowledged: bool = False
    attempts: int = 0


class PortalContext:
    def __init__(
        self,
        name: str,
        channel: BroadcastChannel,
        view: PortalView,
        config: Optional[HandshakeConfig] = None,
        history_keys: Optional[Iterable[str]] = None,
    ):
        """
        history_keys: histories this portal renders; ACTION_RESPONSE slices
        for other keys are ignored. Defaults to the portal's own name.
        """
        self.name = name
        self.channel = channel
        self.view = view
        self.config = config or HandshakeConfig()
        self.history_keys = set(history_keys or [name])

        self.state = PortalState.INIT
        self.session: Optional[PortalSession] = None
        self.snapshot: Optional[Dict[str, Any]] = None
        self.awaiting_action = False
        self.failure: Optional[SyncTimeout] = None

        self._resync_requested = False
        self._handshake_task: Optional[asyncio.Task] = None
        self._action_timer: Optional[asyncio.TimerHandle] = None
        self._action_done = asyncio.Event()
        self._settled = asyncio.Event()

        self._handlers = {
            PortalReady: self._on_peer_message,
            StateUpdate: self._on_state_update,
            ActionRequest: self._on_peer_message,
            ActionResponse: self._on_action_response,
            PortalClosing: self._on_peer_message,
        }
        missing = [t.__name__ for t in MESSAGE_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f"PortalContext has no handler for: {', '.join(missing)}")

    @property
    def tag(self) -> str:
        return f"[PORTAL:{self.name}]"

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    def start(self) -> None:
        """Join the channel and begin handshaking. Needs a running loop."""
        if self.state != PortalState.INIT:
            raise RuntimeError(f"{self.tag} already started ({self.state.value})")
        self.channel.subscribe(self.on_message)
        self.session = PortalSession()
        self.state = PortalState.HANDSHAKING
        logger.info("%s handshaking on %s", self.tag, self.channel.name)
        self._handshake_task = asyncio.get_running_loop().create_task(self._handshake())

    async def _handshake(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout
        while self.state == PortalState.HANDSHAKING:
            remaining = deadline - loop.time()
            if remaining <= 0:
                self._fail()
                return
            self.session.attempts += 1
            self.post(PortalReady(portal=self.name))
            await asyncio.sleep(min(self.config.interval, remaining))

    def _fail(self) -> None:
        if self.state != PortalState.HANDSHAKING:
            return
        self.state = PortalState.FAILED
        self.failure = SyncTimeout(
            f"Portal '{self.name}' could not sync with the primary within {self.config.timeout:g}s "
            f"({self.session.attempts} READY attempts). Close and reopen the portal."
        )
        logger.error("%s %s", self.tag, self.failure)
        self._settled.set()
        self.view.error(str(self.failure))

    async def wait_synced(self) -> None:
        """Resolve when synced; raise SyncTimeout if the handshake failed."""
        await self._settled.wait()
        if self.state == PortalState.FAILED:
            raise self.failure

    def close(self) -> None:
        if self.state == PortalState.CLOSED:
            return
        if self.state != PortalState.INIT:
            self.post(PortalClosing(portal=self.name))
        self._stop_handshake()
        self._cancel_action_timer()
        self.channel.unsubscribe(self.on_message)
        self.state = PortalState.CLOSED
        logger.info("%s closed", self.tag)

    def request_resync(self) -> None:
        """Ask for a fresh snapshot; the next STATE_UPDATE is adopted even when synced."""
        if self.state != PortalState.SYNCED:
            raise RuntimeError(f"{self.tag} cannot resync from {self.state.value}")
        self._resync_requested = True
        self.post(PortalReady(portal=self.name))

    def post(self, message) -> None:
        self.channel.post(dump_message(message), sender=self.on_message)

    def _stop_handshake(self) -> None:
        task = self._handshake_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ──────────────────────────────────────────────
    # Actions
    # ──────────────────────────────────────────────

    def send_action(self, payload: str = "") -> None:
        """
        One outstanding request at a time: input stays disabled until the
        matching ACTION_RESPONSE (or the optional action timeout).
        """
        if self.state != PortalState.SYNCED:
            raise RuntimeError(f"{self.tag} cannot send actions while {self.state.value}")
        if self.awaiting_action:
            raise RuntimeError(f"{self.tag} already awaiting an action response")
        self.awaiting_action = True
        self._action_done.clear()
        self.view.set_input_enabled(False)
        self.post(ActionRequest(payload=payload, portal=self.name))
        logger.info("%s action requested", self.tag)

        if self.config.action_timeout is not None:
            loop = asyncio.get_running_loop()
            self._action_timer = loop.call_later(self.config.action_timeout, self._action_expired)

    async def wait_action(self) -> None:
        await self._action_done.wait()

    def _action_expired(self) -> None:
        self._action_timer = None
        if not self.awaiting_action:
            return
        logger.warning("%s action response timed out", self.tag)
        self._finish_action()
        self.view.error(f"No response from the primary after {self.config.action_timeout:g}s.")

    def _finish_action(self) -> None:
        self.awaiting_action = False
        self._cancel_action_timer()
        self.view.set_input_enabled(True)
        self._action_done.set()

    def _cancel_action_timer(self) -> None:
        if self._action_timer is not None:
            self._action_timer.cancel()
            self._action_timer = None

    # ──────────────────────────────────────────────
    # Inbound
    # ──────────────────────────────────────────────

    def on_message(self, data: Dict[str, Any]) -> None:
        if self.state in {PortalState.CLOSED, PortalState.FAILED}:
            return
        try:
            message = parse_message(data)
        except ValueError as e:
            logger.warning("%s dropped message: %s", self.tag, e)
            return
        handler = self._handlers.get(type(message))
        if handler is None:
            raise TypeError(f"Unhandled message type: {type(message).__name__}")
        handler(message)

    def _on_state_update(self, message: StateUpdate) -> None:
        if self.state == PortalState.SYNCED and not self._resync_requested:
            logger.debug("%s duplicate STATE_UPDATE ignored", self.tag)
            return
        if self.state not in {PortalState.HANDSHAKING, PortalState.SYNCED}:
            return

        self._stop_handshake()
        self._resync_requested = False
        self.snapshot = message.payload.model_dump(mode="json")
        self.state = PortalState.SYNCED
        self.session.is_acknowledged = True
        self._settled.set()
        logger.info("%s synced after %d READY attempts", self.tag, self.session.attempts)
        self.view.render_all(self.snapshot)

    def _on_action_response(self, message: ActionResponse) -> None:
        if self.state != PortalState.SYNCED:
            return
        for key, history in message.payload.items():
            if key not in self.history_keys:
                continue
            self.snapshot.setdefault("histories", {})[key] = history
            self.view.render_history(key, history)

        if self.awaiting_action and message.portal in {None, self.name}:
            logger.info("%s action response received", self.tag)
            self._finish_action()

    def _on_peer_message(self, message) -> None:
        logger.debug("%s ignoring %s", self.tag, message.type)
