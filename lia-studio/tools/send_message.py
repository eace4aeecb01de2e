import json
import sys
from urllib import request

API = "http://localhost:8000"

MESSAGE_TYPES = [
    "PORTAL_READY",
    "ACTION_REQUEST",
    "PORTAL_CLOSING",
]


def prompt(msg, default=None):
    val = input(f"{msg} " + (f"[{default}] " if default else "")) or default
    return val


def build_message(msg_type, portal):
    message = {"type": msg_type, "portal": portal}
    if msg_type == "ACTION_REQUEST":
        message["payload"] = prompt("Payload", "")
    return message


def post(path, body):
    data = json.dumps(body).encode("utf-8")
    req = request.Request(API + path, data=data, headers={"Content-Type": "application/json"})
    with request.urlopen(req) as resp:
        return json.loads(resp.read().decode("utf-8"))


def main():
    session_id = prompt("Session ID", "test-session")
    portal = prompt("Portal", "metis")
    print("Choose message type:")
    for idx, t in enumerate(MESSAGE_TYPES, 1):
        print(f"{idx}. {t}")
    try:
        choice = int(prompt("Number", "1")) - 1
        msg_type = MESSAGE_TYPES[choice]
    except Exception:
        print("Invalid selection")
        sys.exit(1)

    message = build_message(msg_type, portal)
    try:
        print("Post:", post("/channel/post", {"session_id": session_id, "message": message}))
        input("Press enter to drain channel events...")
        events = post("/channel/events", {"session_id": session_id, "portal": portal})
        for ev in events:
            print(json.dumps(ev, indent=2)[:2000])
    except Exception as e:
        print("Error talking to server:", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
