"""
Command Resolution
------------------
Turns a raw command line into a matched utility command plus parameters.
Errors are returned as data, never raised.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from engine.catalog import UtilityCatalog, UtilityCommand, UtilityDefinition

logger = logging.getLogger(__name__)

ParamValue = Union[str, bool, int, float]

PARAMETER_ERROR = "ParameterError"

# Cosmetic side-channel values synthesized per op_sig. Not deterministic.
GENERATED_PARAMS: Dict[str, Dict[str, tuple]] = {
    "fs_tools": {"files_found_count": (1, 5)},
}

_TOKEN = re.compile(r"""(?:"[^"]*"|'[^']*'|[^\s"'])+""")


@dataclass
class ParsedCommand:
    utility: UtilityDefinition
    command: UtilityCommand
    params: Dict[str, ParamValue] = field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _strip_quotes(token: str) -> str:
    if token[:1] in {"'", '"'}:
        token = token[1:]
    if token[-1:] in {"'", '"'}:
        token = token[:-1]
    return token


def tokenize(line: str) -> List[str]:
    """
    Split on whitespace; quoted substrings stay whole and lose their quotes.
    """
    return [_strip_quotes(t) for t in _TOKEN.findall((line or "").strip())]


def bind_params(
    utility: UtilityDefinition,
    command: UtilityCommand,
    args: List[str],
    rng: Optional[random.Random] = None,
) -> ParsedCommand:
    params: Dict[str, ParamValue] = {}
    # Flags may appear anywhere; positionals bind in order from what is left.
    positionals = [a for a in args if not a.startswith("-")]
    flags = [a for a in args if a.startswith("-")]
    for idx, name in enumerate(command.placeholders()):
        if idx < len(positionals):
            params[name] = positionals[idx]
        else:
            # No partial success: bound params are dropped with the error.
            return ParsedCommand(
                utility=utility,
                command=command,
                params={},
                error=f"Missing required parameter: {name}",
                error_kind=PARAMETER_ERROR,
            )

    for arg in flags:
        name = arg[2:] if arg.startswith("--") else arg[1:]
        if name:
            params[name] = True

    generated = GENERATED_PARAMS.get(utility.op_sig)
    if generated:
        rng = rng or random
        for key, (lo, hi) in generated.items():
            params[key] = rng.randint(lo, hi)

    return ParsedCommand(utility=utility, command=command, params=params)


def resolve_command(
    line: str,
    catalog: Optional[UtilityCatalog],
    rng: Optional[random.Random] = None,
) -> Optional[ParsedCommand]:
    """
    Returns None when no utility/command matches (caller falls back to
    free-form interpretation), else a ParsedCommand that may carry an error.
    """
    if catalog is None:
        return None
    tokens = tokenize(line)
    if not tokens:
        return None

    base = tokens[0]
    sub = tokens[1] if len(tokens) > 1 else None

    for _, utility in catalog.utilities():
        if utility.command_name != base:
            continue
        if utility.commands and sub is not None:
            command = utility.find_command(sub)
            if command is not None:
                return bind_params(utility, command, tokens[2:], rng=rng)
        if utility.syntax:
            return bind_params(utility, utility.implicit_command(), tokens[1:], rng=rng)

    logger.debug("No utility matches %r", base)
    return None
