"""
Portal Messages
---------------
Closed set of envelopes exchanged on the sync channel. Every envelope is
{"type": ..., "payload": ...}; the type tag selects the model.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

PORTAL_READY = "PORTAL_READY"
STATE_UPDATE = "STATE_UPDATE"
ACTION_REQUEST = "ACTION_REQUEST"
ACTION_RESPONSE = "ACTION_RESPONSE"
PORTAL_CLOSING = "PORTAL_CLOSING"


class SyncSnapshot(BaseModel):
    state: Dict[str, Any] = Field(default_factory=dict)
    histories: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    log: List[Dict[str, Any]] = Field(default_factory=list)
    files: Dict[str, Any] = Field(default_factory=dict)


class PortalReady(BaseModel):
    type: Literal["PORTAL_READY"] = PORTAL_READY
    portal: Optional[str] = None


class StateUpdate(BaseModel):
    type: Literal["STATE_UPDATE"] = STATE_UPDATE
    payload: SyncSnapshot


class ActionRequest(BaseModel):
    type: Literal["ACTION_REQUEST"] = ACTION_REQUEST
    payload: str = ""
    portal: Optional[str] = None


class ActionResponse(BaseModel):
    type: Literal["ACTION_RESPONSE"] = ACTION_RESPONSE
    payload: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    portal: Optional[str] = None


class PortalClosing(BaseModel):
    type: Literal["PORTAL_CLOSING"] = PORTAL_CLOSING
    portal: Optional[str] = None


Message = Annotated[
    Union[PortalReady, StateUpdate, ActionRequest, ActionResponse, PortalClosing],
    Field(discriminator="type"),
]

MESSAGE_TYPES = (PortalReady, StateUpdate, ActionRequest, ActionResponse, PortalClosing)

_adapter = TypeAdapter(Message)


def parse_message(data: Any):
    """
    Validate a decoded envelope. Raises ValueError for unknown or malformed
    messages (pydantic's ValidationError is a ValueError).
    """
    if not isinstance(data, dict):
        raise ValueError(f"Message envelope must be an object, got {type(data).__name__}")
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        raise ValueError(f"Invalid message {data.get('type')!r}: {e.error_count()} error(s)") from e


def dump_message(message) -> Dict[str, Any]:
    return message.model_dump(mode="json")
