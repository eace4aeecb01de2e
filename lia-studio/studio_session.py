"""
Studio Session
--------------
The primary context's authoritative state: path store, catalog, state
vector, chat histories and activity log. Every kernel turn, shell line and
portal monologue goes through here.
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List

from engine.bootstrap import (
    KERNEL_BOOTSTRAP_PATH,
    PORTAL_PROMPT_TEMPLATE,
    UTILITIES_PATH,
    BootstrapLoader,
    refresh_preview_index,
)
from engine.catalog import CatalogError, load_catalog, load_state_definitions
from engine.kernel import CommandKernel, KernelResult
from engine.state import initialize_state
from engine.templater import render
from sync.channel import BroadcastChannel
from sync.messages import SyncSnapshot
from sync.primary import PrimaryContext
from sync.snapshot import build_snapshot
from ui.events import emit_history_update, emit_hud_update
from vfs.path_store import PathStore
from vfs.shell import run_shell
from vfs.tree import build_tree

logger = logging.getLogger(__name__)

PORTALS = ("metis", "pupa")
HISTORY_KEYS = ("kernel", "shell") + PORTALS
LOG_LIMIT = 100


def chat_message(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"text": text}]}


class StudioSession:
    def __init__(self, store: PathStore, narrator=None, rng=None):
        """
        store: bootstrapped path store (kernel bootstrap and utilities included)
        narrator: KernelNarrator or None (offline)
        """
        self.store = store
        self.narrator = narrator
        self.events: List[Dict[str, Any]] = []
        self.log: List[Dict[str, Any]] = []
        self.histories: Dict[str, List[Dict[str, Any]]] = {k: [] for k in HISTORY_KEYS}
        self.last_user_action = ""
        # Routes, the loop thread and to_thread workers all reach this session.
        self.lock = threading.RLock()

        if KERNEL_BOOTSTRAP_PATH not in store:
            raise CatalogError(f"Kernel bootstrap missing: {KERNEL_BOOTSTRAP_PATH}")
        bootstrap = store.read_json(KERNEL_BOOTSTRAP_PATH)
        self.definitions = load_state_definitions(bootstrap)
        self.catalog = load_catalog(store.read_text(UTILITIES_PATH)) if UTILITIES_PATH in store else None
        if self.catalog is None:
            logger.warning("No utility catalog at %s; every command goes to the narrator", UTILITIES_PATH)

        prompt_template = (
            ((bootstrap.get("EMBEDDED_SYSTEM_PROMPTS") or {}).get("protocols") or {})
            .get("LIA_OS", {})
            .get("prompt_template")
        )
        self.kernel = CommandKernel(
            self.catalog,
            self.definitions,
            narrator=narrator,
            prompt_template=prompt_template,
            rng=rng,
        )
        self.state = initialize_state(self.definitions, self.catalog)
        self.record("session", "Kernel online.")

    @classmethod
    def from_data(cls, root=None, narrator=None, rng=None) -> "StudioSession":
        return cls(BootstrapLoader(root).load_store(), narrator=narrator, rng=rng)

    def emit(self, event: Dict[str, Any]):
        self.events.append(event)

    def drain(self) -> List[Dict[str, Any]]:
        with self.lock:
            evs = self.events[:]
            self.events = []
        return evs

    def record(self, kind: str, text: str) -> None:
        self.log.append({
            "timestamp": datetime.now().isoformat(timespec="seconds"),
            "type": kind,
            "text": text,
        })
        if len(self.log) > LOG_LIMIT:
            del self.log[: len(self.log) - LOG_LIMIT]

    # ──────────────────────────────────────────────
    # Kernel
    # ──────────────────────────────────────────────

    def process_command(self, line: str, operator: str = "Send") -> KernelResult:
        line = (line or "").strip()
        with self.lock:
            self.last_user_action = line
            history = self.histories["kernel"]
            history.append(chat_message("user", line))

            result = self.kernel.execute(line, self.state, self.store, history=history, operator=operator)
            self.state = result.state
            history.append(chat_message(result.role, result.text))

            for verb, path in result.files_changed:
                self.record("vfs", f"{verb} {path}")
            if result.files_changed:
                refresh_preview_index(self.store)
            self.record("kernel" if result.role == "model" else "error", line)

            emit_hud_update(self, self.definitions, self.state)
            emit_history_update(self, "kernel", history)
        return result

    def shell(self, line: str) -> Dict[str, Any]:
        with self.lock:
            result = run_shell(line, self.store, self.state)
            history = self.histories["shell"]
            if (line or "").strip() == "clear":
                history.clear()
            else:
                history.append(chat_message("user", line))
                history.append(chat_message("error" if result["error"] else "model", result["output"]))
            if (line or "").strip().startswith("echo"):
                refresh_preview_index(self.store)
        return result

    def tree(self) -> Dict[str, Any]:
        with self.lock:
            return build_tree(self.store.paths())

    def snapshot(self) -> SyncSnapshot:
        with self.lock:
            return build_snapshot(self.state, self.store, self.histories, self.log)

    # ──────────────────────────────────────────────
    # Portals
    # ──────────────────────────────────────────────

    def run_monologue(self, portal: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        One reasoning step for a portal entity, seeded by the last user action.
        Failures land in the portal history as error entries.
        Returns {history_key: history}.

        The model call runs outside the session lock; only the prompt build
        and the history append hold it.
        """
        if portal not in PORTALS:
            raise ValueError(f"Unknown portal: {portal}")
        try:
            with self.lock:
                template = self.store.read_text(PORTAL_PROMPT_TEMPLATE.format(portal=portal))
                prompt = self.last_user_action
                state_json = json.dumps(self.state, indent=2)
            if not template:
                raise RuntimeError(f"{portal.capitalize()} system prompt not loaded.")
            if self.narrator is None:
                raise RuntimeError("No kernel model configured.")
            system_prompt = render(template, {"LIA_STATE": state_json, "PROMPT": prompt})
            entry = chat_message("model", self.narrator.monologue(system_prompt, prompt))
        except Exception as e:
            error_text = f"{portal.capitalize()} Monologue Failed: {e}"
            logger.error(error_text)
            entry = chat_message("error", error_text)
        with self.lock:
            history = self.histories[portal]
            history.append(entry)
            self.record(portal, "monologue")
            return {portal: list(history)}

    def attach_primary(self, channel: BroadcastChannel) -> PrimaryContext:
        primary = PrimaryContext(channel, self.snapshot, lambda portal, _payload: self.run_monologue(portal))
        primary.start()
        return primary
