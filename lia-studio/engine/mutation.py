"""
State Mutation
--------------
Applies declared state changes to a state vector.
Pure: returns a new vector, the input is never modified.
Changes fold in declaration order; each sees the effects of the ones before it.
A malformed change is skipped on its own, the rest of the batch still applies.
"""

import logging
import math
from copy import deepcopy
from typing import Any, Dict, Iterable, List

from engine.catalog import StateChange
from engine.templater import render

logger = logging.getLogger(__name__)

NAN = float("nan")


def to_number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return NAN
    return NAN


def _multiplier_value(value: Any):
    # Flags bind as True; a flag is a switch, not a factor.
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            factor = float(value.strip())
        except ValueError:
            return None
        # float() accepts "nan" and "inf"; neither is a usable factor.
        return factor if math.isfinite(factor) else None
    return None


def condition_met(condition: str, params: Dict[str, Any]) -> bool:
    key = condition.lstrip("-")
    return bool(params.get(key))


def _is_qualitative(change: StateChange, current: Any) -> bool:
    if change.type is not None or change.operator != "=":
        return change.is_qualitative()
    if isinstance(current, list):
        return True
    return isinstance(current, str) and math.isnan(to_number(current))


def _item_for(change: StateChange, params: Dict[str, Any]):
    if change.value_template:
        return render(change.value_template, params)
    if isinstance(change.value, list):
        return list(change.value)
    if isinstance(change.value, float) and change.value.is_integer():
        return str(int(change.value))
    return str(change.value)


def _apply_qualitative(change: StateChange, current: Any, params: Dict[str, Any]):
    item = _item_for(change, params)

    if change.operator in {"set", "="}:
        return True, item

    if isinstance(current, (int, float)) and not isinstance(current, bool):
        logger.debug("Skipping %s on numeric metric %s", change.operator, change.metric)
        return False, current
    if isinstance(item, list):
        logger.debug("Skipping %s with list value on %s", change.operator, change.metric)
        return False, current

    if isinstance(current, list):
        items: List[str] = list(current)
    elif isinstance(current, str) and current:
        items = [current]
    else:
        items = []

    if change.operator == "add":
        if item not in items:
            items.append(item)
    elif change.operator == "remove":
        items = [i for i in items if i != item]
    return True, items


def _apply_numerical(change: StateChange, current: Any, params: Dict[str, Any]):
    delta = to_number(change.value)
    if change.multiplier and change.multiplier in params:
        factor = _multiplier_value(params[change.multiplier])
        if factor is not None:
            delta *= factor

    base = to_number(current)
    if math.isnan(base) or math.isnan(delta):
        logger.debug("Skipping %s on %s: non-numeric operand", change.operator, change.metric)
        return False, current

    if change.operator == "+=":
        return True, base + delta
    if change.operator == "-=":
        return True, base - delta
    if change.operator == "=":
        return True, delta
    logger.debug("Skipping %s: operator %s is not numeric", change.metric, change.operator)
    return False, current


def apply_state_changes(
    changes: Iterable[StateChange],
    current: Dict[str, Any],
    params: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Returns a new state vector with every applicable change folded in.
    Unknown metrics are ignored, never created. No range clamping here.
    """
    state = deepcopy(current)
    params = params or {}

    for change in changes or []:
        if change.condition and not condition_met(change.condition, params):
            continue
        if change.metric not in state:
            logger.debug("Skipping change on unknown metric %s", change.metric)
            continue

        value = state[change.metric]
        if _is_qualitative(change, value):
            applied, new_value = _apply_qualitative(change, value, params)
        else:
            applied, new_value = _apply_numerical(change, value, params)
        if applied:
            state[change.metric] = new_value

    return state
