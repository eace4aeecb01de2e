import logging
import math
from copy import deepcopy
from typing import Any, Dict, List, Optional, Sequence, Tuple

from engine.catalog import MetricDefinition, StateDefinition, UtilityCatalog

logger = logging.getLogger(__name__)

STRESS_TEST_PREFIX = "system-stress-test"


def initialize_state(
    definitions: Sequence[StateDefinition],
    catalog: Optional[UtilityCatalog] = None,
) -> Dict[str, Any]:
    """
    Build a fresh state vector from the bootstrap definitions.
    Metrics the catalog mutates but nobody defined are seeded so that every
    catalog metric exists after initialization.
    """
    state: Dict[str, Any] = {}
    for d in definitions:
        state[d.id] = deepcopy(d.value_initial)

    if catalog is not None:
        for metric, qualitative in catalog.referenced_metrics().items():
            if metric in state:
                continue
            logger.warning("Catalog metric %s has no bootstrap definition; seeding default", metric)
            state[metric] = [] if qualitative else 0.0
    return state


def definition_for(definitions: Sequence[StateDefinition], metric_id: str) -> Optional[StateDefinition]:
    for d in definitions:
        if d.id == metric_id:
            return d
    return None


def apply_overrides(line: str, state: Dict[str, Any], definitions: Sequence[StateDefinition]) -> Tuple[Dict[str, Any], int]:
    """
    system-stress-test key=value key=value ...
    Only existing keys are overridden. Ranged metrics must parse as numbers.
    """
    new_state = deepcopy(state)
    body = line[len(STRESS_TEST_PREFIX):] if line.startswith(STRESS_TEST_PREFIX) else line
    count = 0
    for override in body.split():
        parts = override.split("=")
        if len(parts) != 2:
            continue
        key, raw = parts[0].strip(), parts[1].strip()
        if key not in new_state:
            continue
        d = definition_for(definitions, key)
        if isinstance(d, MetricDefinition):
            try:
                value = float(raw)
            except ValueError:
                continue
            if math.isnan(value):
                continue
        else:
            value = raw
        new_state[key] = value
        count += 1
    return new_state, count


def clamp_for_display(value: Any, value_range: Optional[Sequence[float]]) -> Any:
    if value_range is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    lo, hi = value_range
    return max(lo, min(hi, value))


def format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "(none)"
    return str(value)


def format_state_line(definitions: Sequence[StateDefinition], state: Dict[str, Any], sep: str = ", ") -> str:
    parts: List[str] = []
    for d in definitions:
        parts.append(f"{d.id.upper()}: {format_value(state.get(d.id))}")
    return sep.join(parts)
