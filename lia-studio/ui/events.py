"""
Shared UI event emitters.
Works for both CLI and Web views by probing for a session.emit hook.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from engine.catalog import MetricDefinition, StateDefinition
from engine.state import clamp_for_display, format_value


_DEBUG_LOG_PATH = Path(__file__).resolve().parents[1] / "studio.log"


def _debug_log(line: str) -> None:
    try:
        ts = datetime.now().strftime("%H:%M:%S")
        _DEBUG_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with _DEBUG_LOG_PATH.open("a", encoding="utf-8") as f:
            f.write(f"{ts} {line}\n")
    except Exception:
        # never break the studio loop for debug logging
        pass


def emit_event(target, payload: Dict[str, Any]) -> None:
    """
    Best-effort emit of structured events for non-blocking UIs.
    Falls back silently for CLI.
    """
    try:
        session = getattr(target, "session", None) or target
        try:
            t = payload.get("type") if isinstance(payload, dict) else None
            if t in {"portal_error", "portal_synced", "dissonance"}:
                _debug_log(
                    f"DEBUG: emit_event type={t} "
                    f"(has_session={bool(session)}, has_emit={bool(session and hasattr(session, 'emit'))})"
                )
        except Exception:
            pass
        if session and hasattr(session, "emit"):
            session.emit(payload)
    except Exception:
        # Swallow silently; emitting should never break the studio loop.
        pass


def build_hud_update(definitions: Sequence[StateDefinition], state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Gauge payload for the HUD. Ranged metrics are clamped for display only;
    the state vector itself is never clamped.
    """
    metrics: List[Dict[str, Any]] = []
    qualitative: List[Dict[str, Any]] = []
    for d in definitions:
        raw = state.get(d.id)
        if isinstance(d, MetricDefinition):
            lo, hi = d.range
            shown = clamp_for_display(raw, d.range)
            pct: Optional[float] = None
            if isinstance(shown, (int, float)) and not isinstance(shown, bool) and hi > lo:
                pct = round((shown - lo) / (hi - lo) * 100, 1)
            metrics.append({
                "id": d.id,
                "name": d.name,
                "value": shown,
                "display": format_value(shown),
                "range": [lo, hi],
                "percent": pct,
                "critical": d.critical_threshold is not None and isinstance(shown, (int, float)) and shown >= d.critical_threshold,
            })
        else:
            qualitative.append({"id": d.id, "name": d.name, "value": raw, "display": format_value(raw)})
    return {"type": "hud_update", "metrics": metrics, "qualitative": qualitative}


def emit_hud_update(target, definitions: Sequence[StateDefinition], state: Dict[str, Any]) -> None:
    emit_event(target, build_hud_update(definitions, state))


def build_history_update(key: str, history: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "history_update", "key": key, "history": history}


def emit_history_update(target, key: str, history: List[Dict[str, Any]]) -> None:
    emit_event(target, build_history_update(key, history))


def emit_portal_error(target, text: str) -> None:
    emit_event(target, {"type": "portal_error", "text": text})
