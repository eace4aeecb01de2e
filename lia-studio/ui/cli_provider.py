from __future__ import annotations

import json
from typing import Any, Dict, List

from ui.provider import PortalView


def _message_text(msg: Dict[str, Any]) -> str:
    parts = msg.get("parts") or []
    return " ".join(p.get("text", "") for p in parts if isinstance(p, dict))


class CLIPortalView(PortalView):
    def __init__(self, name: str = "portal"):
        self.name = name
        self.input_enabled = True

    def render_all(self, snapshot: Dict[str, Any]) -> None:
        print()
        print(f"== {self.name.upper()} :: synced ==")
        state = snapshot.get("state") or {}
        for key, value in state.items():
            print(f"  {key}: {json.dumps(value)}")
        for key, history in (snapshot.get("histories") or {}).items():
            self.render_history(key, history)
        print()

    def render_history(self, key: str, history: List[Dict[str, Any]]) -> None:
        print(f"-- {key} ({len(history)}) --")
        for msg in history[-5:]:
            print(f"[{msg.get('role', '?')}] {_message_text(msg)}")

    def set_input_enabled(self, enabled: bool) -> None:
        self.input_enabled = enabled
        if not enabled:
            print("... awaiting primary ...")

    def error(self, text: str) -> None:
        print(f"[ERROR] {text}")
