"""
Utility Catalog
---------------
Declarative table of utilities, their command syntax and conceptual impact.
Validated once at load time; malformed entries are rejected here, not at use.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_VERSION = 1

NUMERIC_OPERATORS = {"+=", "-=", "="}
LIST_OPERATORS = {"add", "remove", "set"}

_BACKTICK_NAME = re.compile(r"^`([^`]+)`")


class CatalogError(ValueError):
    pass


class StateChange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metric: str
    operator: Literal["+=", "-=", "=", "set", "add", "remove"]
    value: Union[float, int, str, List[str], None] = None
    type: Optional[Literal["qualitative", "numerical"]] = None
    condition: Optional[str] = None
    multiplier: Optional[str] = None
    value_template: Optional[str] = None

    @model_validator(mode="after")
    def _operator_matches_type(self):
        if self.type == "qualitative" and self.operator in {"+=", "-="}:
            raise ValueError(f"operator {self.operator} is numeric but {self.metric} is qualitative")
        if self.type == "numerical" and self.operator in {"add", "remove", "set"}:
            raise ValueError(f"operator {self.operator} needs a qualitative metric, {self.metric} is numerical")
        if self.value is None and self.value_template is None:
            raise ValueError(f"state change on {self.metric} has neither value nor value_template")
        return self

    def is_qualitative(self) -> bool:
        if self.type is not None:
            return self.type == "qualitative"
        return self.operator in LIST_OPERATORS


class FsAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["create", "update", "append", "delete"]
    path_template: str
    content_template: str = ""


class ConceptualImpact(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state_changes: List[StateChange] = Field(default_factory=list)
    narrative: str = ""
    dmesg_output: str = ""
    fs_actions: List[FsAction] = Field(default_factory=list)


class UtilityCommand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cmd: Optional[str] = None
    syntax: str
    parameters: Dict[str, str] = Field(default_factory=dict)
    conceptual_impact: ConceptualImpact = Field(default_factory=ConceptualImpact)

    def placeholders(self) -> List[str]:
        return re.findall(r"<([^>]+)>", self.syntax)


class UtilityDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str = ""
    maps_to: Optional[str] = None
    commands: Optional[List[UtilityCommand]] = None
    syntax: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)
    conceptual_impact: Optional[ConceptualImpact] = None
    op_sig: str = ""

    @model_validator(mode="after")
    def _has_command_form(self):
        if not self.commands and not self.syntax:
            raise ValueError(f"utility {self.name!r} declares neither syntax nor commands")
        return self

    @property
    def command_name(self) -> str:
        m = _BACKTICK_NAME.match(self.name)
        return m.group(1) if m else self.name

    def implicit_command(self) -> Optional[UtilityCommand]:
        """The single command of a flat-syntax utility."""
        if not self.syntax:
            return None
        return UtilityCommand(
            syntax=self.syntax,
            parameters=self.parameters,
            conceptual_impact=self.conceptual_impact or ConceptualImpact(),
        )

    def find_command(self, name: str) -> Optional[UtilityCommand]:
        for command in self.commands or []:
            if command.cmd == name:
                return command
        return None

    def all_commands(self) -> List[UtilityCommand]:
        out = list(self.commands or [])
        implicit = self.implicit_command()
        if implicit is not None:
            out.append(implicit)
        return out


class UtilitySection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    utilities: List[UtilityDefinition] = Field(default_factory=list)


class UtilityCatalog(BaseModel):
    schema_version: int = SUPPORTED_SCHEMA_VERSION
    sections: Dict[str, UtilitySection] = Field(default_factory=dict)

    def utilities(self) -> Iterator[Tuple[str, UtilityDefinition]]:
        for section_name, section in self.sections.items():
            for utility in section.utilities:
                yield section_name, utility

    def find_utility(self, command_base: str) -> Optional[UtilityDefinition]:
        for _, utility in self.utilities():
            if utility.command_name == command_base:
                return utility
        return None

    def referenced_metrics(self) -> Dict[str, bool]:
        """metric id -> True when every reference treats it as qualitative."""
        out: Dict[str, bool] = {}
        for _, utility in self.utilities():
            for command in utility.all_commands():
                for change in command.conceptual_impact.state_changes:
                    qualitative = change.is_qualitative()
                    out[change.metric] = out.get(change.metric, qualitative) and qualitative
        return out


def load_catalog(raw: Union[str, bytes, Dict[str, Any]]) -> UtilityCatalog:
    """
    Parse and validate a catalog document.

    Accepts either {"schema_version": n, "sections": {...}} or the legacy shape
    where every top-level key is a section name.
    """
    try:
        doc = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise CatalogError("Catalog document must be an object")

    version = doc.get("schema_version", SUPPORTED_SCHEMA_VERSION)
    if version != SUPPORTED_SCHEMA_VERSION:
        raise CatalogError(f"Unsupported catalog schema_version: {version}")

    if "sections" in doc:
        sections = doc["sections"]
    else:
        sections = {k: v for k, v in doc.items() if k != "schema_version"}

    try:
        catalog = UtilityCatalog(schema_version=version, sections=sections)
    except ValidationError as e:
        raise CatalogError(f"Malformed utility catalog: {e}") from e

    count = sum(1 for _ in catalog.utilities())
    logger.info("Loaded utility catalog: %d sections, %d utilities", len(catalog.sections), count)
    return catalog


# ──────────────────────────────────────────────
# State definitions (from the kernel bootstrap)
# ──────────────────────────────────────────────

class MetricDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    value_initial: float = 0.0
    range: Tuple[float, float] = (0.0, 1.0)
    description: str = ""
    dynamics_notes: Optional[str] = None
    critical_threshold: Optional[float] = None

    @property
    def is_ranged(self) -> bool:
        return True


class QualitativeDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    initial_value: Union[str, List[str]] = ""
    description: str = ""

    @property
    def is_ranged(self) -> bool:
        return False

    @property
    def value_initial(self):
        return self.initial_value


StateDefinition = Union[MetricDefinition, QualitativeDefinition]


def load_state_definitions(bootstrap: Union[str, bytes, Dict[str, Any]]) -> List[StateDefinition]:
    try:
        doc = json.loads(bootstrap) if isinstance(bootstrap, (str, bytes)) else bootstrap
    except json.JSONDecodeError as e:
        raise CatalogError(f"Bootstrap is not valid JSON: {e}") from e

    metrics = (doc.get("SYSTEM_STATE_METRICS") or {}).get("metrics") or []
    states = (doc.get("SYSTEM_STATE_QUALITATIVE") or {}).get("states") or []
    try:
        out: List[StateDefinition] = [MetricDefinition(**m) for m in metrics]
        out.extend(QualitativeDefinition(**s) for s in states)
    except (ValidationError, TypeError) as e:
        raise CatalogError(f"Malformed state definitions: {e}") from e

    seen = set()
    for d in out:
        if d.id in seen:
            raise CatalogError(f"Duplicate state definition id: {d.id}")
        seen.add(d.id)
    return out
