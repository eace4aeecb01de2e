from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from copy import deepcopy
from typing import Any, Dict, List, Optional

from studio_context import NARRATOR
from studio_session import StudioSession
from sync.channel import BroadcastChannel
from sync.messages import dump_message, parse_message

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


sessions = {}
bridges = {}


class SessionRequest(BaseModel):
    session_id: str


class CommandRequest(BaseModel):
    session_id: str
    line: str
    operator: str = "Send"


class ShellRequest(BaseModel):
    session_id: str
    line: str


class ChannelPostRequest(BaseModel):
    session_id: str
    message: Dict[str, Any]


class ChannelEventsRequest(BaseModel):
    session_id: str
    portal: Optional[str] = None


class ChannelBridge:
    """
    Stands in for remote portals on a session's channel: keeps what the
    primary broadcasts until a portal drains it over HTTP.
    """

    def __init__(self, session: StudioSession):
        self.channel = BroadcastChannel(f"lia-sync-{id(session)}")
        self.primary = session.attach_primary(self.channel)
        self.channel.subscribe(self.on_message)
        self.outbox: List[Dict[str, Any]] = []

    def on_message(self, data: Dict[str, Any]) -> None:
        self.outbox.append(data)

    def post(self, data: Dict[str, Any]) -> None:
        self.channel.post(data, sender=self.on_message)

    def drain(self, portal: Optional[str] = None) -> List[Dict[str, Any]]:
        keep, out = [], []
        for msg in self.outbox:
            target = msg.get("portal")
            if portal is None or target in {None, portal}:
                out.append(msg)
            else:
                keep.append(msg)
        self.outbox = keep
        return out


def get_session(session_id: str) -> StudioSession:
    if session_id not in sessions:
        sessions[session_id] = StudioSession.from_data(narrator=NARRATOR)
    return sessions[session_id]


def get_bridge(session_id: str) -> ChannelBridge:
    if session_id not in bridges:
        bridges[session_id] = ChannelBridge(get_session(session_id))
    return bridges[session_id]


@app.post("/command")
def command(req: CommandRequest):
    session = get_session(req.session_id)
    result = session.process_command(req.line, operator=req.operator)
    return {
        "role": result.role,
        "text": result.text,
        "state": result.state,
        "files_changed": [{"action": a, "path": p} for a, p in result.files_changed],
        "events": session.drain(),
    }


@app.post("/shell")
def shell(req: ShellRequest):
    session = get_session(req.session_id)
    return session.shell(req.line)


@app.post("/state")
def state(req: SessionRequest):
    session = get_session(req.session_id)
    with session.lock:
        return {"state": deepcopy(session.state), "log": list(session.log)}


@app.post("/tree")
def tree(req: SessionRequest):
    return get_session(req.session_id).tree()


@app.post("/channel/post")
async def channel_post(req: ChannelPostRequest):
    try:
        message = parse_message(req.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    get_bridge(req.session_id).post(dump_message(message))
    return {"ok": True}


@app.post("/channel/events")
async def channel_events(req: ChannelEventsRequest):
    if req.session_id not in bridges:
        return []
    return bridges[req.session_id].drain(req.portal)
