"""
Primary Context
---------------
Authoritative side of the sync channel. Stateless with respect to portals:
every READY gets a full snapshot broadcast, every ACTION_REQUEST gets one
reasoning step and an ACTION_RESPONSE carrying only the touched history.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from sync.channel import BroadcastChannel
from sync.messages import (
    MESSAGE_TYPES,
    ActionRequest,
    ActionResponse,
    PortalClosing,
    PortalReady,
    StateUpdate,
    SyncSnapshot,
    dump_message,
    parse_message,
)

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], SyncSnapshot]
# (portal, payload) -> {history_key: history}
ActionHandler = Callable[[str, str], Dict[str, List[Dict[str, Any]]]]


class PrimaryContext:
    def __init__(self, channel: BroadcastChannel, snapshot_provider: SnapshotProvider, action_handler: ActionHandler):
        self.channel = channel
        self.snapshot_provider = snapshot_provider
        self.action_handler = action_handler
        self.snapshots_sent = 0
        self.actions_served = 0
        self._handlers = {
            PortalReady: self._on_ready,
            StateUpdate: self._on_foreign_broadcast,
            ActionRequest: self._on_action_request,
            ActionResponse: self._on_foreign_broadcast,
            PortalClosing: self._on_closing,
        }
        missing = [t.__name__ for t in MESSAGE_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f"PrimaryContext has no handler for: {', '.join(missing)}")

    def start(self) -> None:
        self.channel.subscribe(self.on_message)
        logger.info("[PRIMARY] listening on %s", self.channel.name)

    def stop(self) -> None:
        self.channel.unsubscribe(self.on_message)

    def post(self, message) -> None:
        self.channel.post(dump_message(message), sender=self.on_message)

    def broadcast_snapshot(self, snapshot: Optional[SyncSnapshot] = None) -> None:
        if snapshot is None:
            snapshot = self.snapshot_provider()
        self.post(StateUpdate(payload=snapshot))
        self.snapshots_sent += 1

    async def on_message(self, data: Dict[str, Any]) -> None:
        try:
            message = parse_message(data)
        except ValueError as e:
            logger.warning("[PRIMARY] dropped message: %s", e)
            return
        handler = self._handlers.get(type(message))
        if handler is None:
            raise TypeError(f"Unhandled message type: {type(message).__name__}")
        await handler(message)

    # ──────────────────────────────────────────────
    # Handlers
    # ──────────────────────────────────────────────

    async def _on_ready(self, message: PortalReady) -> None:
        logger.info("[PRIMARY] Portal %s ready; sending state", message.portal or "?")
        # The provider may wait on the session lock; keep that off the loop.
        snapshot = await asyncio.to_thread(self.snapshot_provider)
        self.broadcast_snapshot(snapshot)

    async def _on_action_request(self, message: ActionRequest) -> None:
        portal = message.portal or "metis"
        logger.info("[PRIMARY] Action request from %s", portal)
        try:
            updates = await asyncio.to_thread(self.action_handler, portal, message.payload)
        except Exception as e:
            # The portal is waiting with its input disabled; answer regardless.
            logger.error("[PRIMARY] Action handler failed for %s: %s", portal, e)
            updates = {}
        self.post(ActionResponse(payload=updates, portal=portal))
        self.actions_served += 1

    async def _on_closing(self, message: PortalClosing) -> None:
        logger.info("[PRIMARY] Portal %s closing", message.portal or "?")

    async def _on_foreign_broadcast(self, message) -> None:
        logger.debug("[PRIMARY] ignoring %s from another primary", message.type)
