"""
Broadcast Channel
-----------------
In-process broadcast medium between the primary and its portals.
Posts are JSON-encoded once and decoded per listener, so no two contexts
ever share an object. Delivery goes through the event loop, never inline.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Any]


class BroadcastChannel:
    def __init__(self, name: str, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.name = name
        self._loop = loop
        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Future] = set()
        self.posted = 0

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def post(self, data: Dict[str, Any], sender: Optional[Listener] = None) -> None:
        """
        Broadcast to every listener except the sender.
        Coroutine listeners are scheduled as tasks.
        """
        raw = json.dumps(data)
        self.posted += 1
        loop = self._loop or asyncio.get_running_loop()
        for listener in list(self._listeners):
            if sender is not None and listener == sender:
                continue
            loop.call_soon(self._deliver, listener, raw)

    def _deliver(self, listener: Listener, raw: str) -> None:
        if listener not in self._listeners:
            return
        try:
            result = listener(json.loads(raw))
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        except Exception:
            # One bad listener must not stop delivery to the rest.
            logger.exception("Listener on channel %s failed", self.name)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Listener on channel %s failed", self.name, exc_info=exc)

    def close(self) -> None:
        self._listeners.clear()
