"""
Command Kernel
--------------
One kernel turn: stress-test overrides, catalog commands, or free-form
fallback through the narrator. Returns a new state; the caller replaces its
copy. File-affecting commands write to the path store.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from engine.catalog import FsAction, StateChange, StateDefinition, UtilityCatalog
from engine.mutation import apply_state_changes
from engine.resolution import ParsedCommand, resolve_command
from engine.state import (
    STRESS_TEST_PREFIX,
    apply_overrides,
    clamp_for_display,
    definition_for,
    format_state_line,
    format_value,
)
from engine.templater import render
from vfs.path_store import PathStore

logger = logging.getLogger(__name__)

ENTROPY_METRIC = "chaotic_entropy"
ENTROPY_STEP = 0.05
DEFAULT_OPERATOR = "Send"


@dataclass
class KernelResult:
    role: str
    text: str
    state: Dict[str, Any]
    parsed: Optional[ParsedCommand] = None
    files_changed: List[Tuple[str, str]] = field(default_factory=list)


def apply_fs_actions(actions: Sequence[FsAction], params: Dict[str, Any], store: PathStore) -> List[Tuple[str, str]]:
    changed = []
    for action in actions or []:
        path = render(action.path_template, params)
        if "%%" in path or not path:
            logger.warning("Unresolved path template %r; skipping %s", action.path_template, action.action)
            continue
        content = render(action.content_template, params)

        if action.action == "create":
            if path in store:
                logger.info("create skipped, %s already exists", path)
                continue
            store.set(path, content)
        elif action.action == "update":
            if path not in store:
                logger.info("update skipped, %s not found", path)
                continue
            store.set(path, content)
        elif action.action == "append":
            existing = store.get(path)
            if isinstance(existing, list):
                store.set(path, existing + [content])
            elif isinstance(existing, str) and existing:
                store.set(path, f"{existing}\n{content}")
            elif existing is None or existing == "":
                store.set(path, content)
            else:
                logger.info("append skipped, %s holds binary content", path)
                continue
        elif action.action == "delete":
            if not store.delete(path):
                continue
        changed.append((action.action, path))
    return changed


class CommandKernel:
    def __init__(
        self,
        catalog: Optional[UtilityCatalog],
        definitions: Sequence[StateDefinition],
        narrator=None,
        prompt_template: Optional[str] = None,
        rng=None,
    ):
        """
        narrator: KernelNarrator (or None offline)
        prompt_template: system prompt for free-form turns (%%STATE_STRING%%, %%OPERATOR%%, %%USER_PROMPT%%)
        """
        self.catalog = catalog
        self.definitions = list(definitions)
        self.narrator = narrator
        self.prompt_template = prompt_template
        self.rng = rng

    def execute(
        self,
        line: str,
        state: Dict[str, Any],
        store: PathStore,
        history: Optional[List[Dict[str, Any]]] = None,
        operator: str = DEFAULT_OPERATOR,
    ) -> KernelResult:
        line = (line or "").strip()

        if line.startswith(STRESS_TEST_PREFIX):
            new_state, count = apply_overrides(line, state, self.definitions)
            text = f"[dmesg] System stress test complete. Applied {count} direct state overrides."
            return KernelResult(role="model", text=text, state=new_state)

        parsed = resolve_command(line, self.catalog, rng=self.rng)
        if parsed is not None:
            return self._run_command(parsed, state, store)

        return self._fallback(line, state, history or [], operator)

    # ──────────────────────────────────────────────
    # Catalog commands
    # ──────────────────────────────────────────────

    def _run_command(self, parsed: ParsedCommand, state: Dict[str, Any], store: PathStore) -> KernelResult:
        if not parsed.ok:
            logger.info("Command rejected: %s", parsed.error)
            return KernelResult(role="error", text=f"[dmesg] command error: {parsed.error}", state=state, parsed=parsed)

        impact = parsed.command.conceptual_impact
        new_state = apply_state_changes(impact.state_changes, state, parsed.params)
        changed = apply_fs_actions(impact.fs_actions, parsed.params, store)

        template = impact.narrative or impact.dmesg_output
        if template:
            text = render(template, parsed.params)
        else:
            text = f"[dmesg] {parsed.utility.command_name} {parsed.command.cmd or ''}".rstrip() + ": ok"
        return KernelResult(role="model", text=text, state=new_state, parsed=parsed, files_changed=changed)

    # ──────────────────────────────────────────────
    # Free-form fallback
    # ──────────────────────────────────────────────

    def _fallback(self, line: str, state: Dict[str, Any], history: List[Dict[str, Any]], operator: str) -> KernelResult:
        try:
            if self.narrator is None:
                raise RuntimeError("No kernel model configured.")
            if not self.prompt_template:
                raise RuntimeError("Kernel prompt template not found in bootstrap.")
            system_prompt = render(self.prompt_template, {
                "STATE_STRING": format_state_line(self.definitions, state),
                "OPERATOR": operator,
                "USER_PROMPT": line,
            })
            turns = list(history) or [{"role": "user", "parts": [{"text": line}]}]
            result = self.narrator.interpret(system_prompt, turns)
        except Exception as e:
            logger.error("Kernel processing error: %s", e)
            return self._dissonance(state, e)

        new_state = dict(state)
        for key, value in result["newState"].items():
            if key in new_state:
                new_state[key] = value
            else:
                logger.debug("Model proposed unknown metric %s; ignored", key)
        return KernelResult(role="model", text=str(result["narrative"]), state=new_state)

    def _dissonance(self, state: Dict[str, Any], error: Exception) -> KernelResult:
        bump = StateChange(metric=ENTROPY_METRIC, operator="+=", value=ENTROPY_STEP, type="numerical")
        new_state = apply_state_changes([bump], state, {})
        d = definition_for(self.definitions, ENTROPY_METRIC)
        value_range = getattr(d, "range", None) or (0.0, 1.0)
        if ENTROPY_METRIC in new_state:
            new_state[ENTROPY_METRIC] = clamp_for_display(new_state[ENTROPY_METRIC], value_range)
            current = format_value(new_state[ENTROPY_METRIC])
        else:
            current = "n/a"
        text = (
            "[System Alert] A cognitive dissonance event occurred. The incoming data stream was incoherent, "
            f"causing a surge in system entropy. Entropy increased by {ENTROPY_STEP}. "
            f"Current Entropy: {current}. Error: {error}"
        )
        return KernelResult(role="error", text=text, state=new_state)
