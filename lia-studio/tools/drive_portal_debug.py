"""
In-process harness: a studio session as primary plus one CLI portal on a
shared channel. Lets you step through kernel turns, the handshake and the
action round trip.

Usage (plain run):
  python tools/drive_portal_debug.py
  python tools/drive_portal_debug.py "netscan --deep target.alpha" "stabilize"

Usage (step through with pdb):
  python -m pdb tools/drive_portal_debug.py

It:
  - boots a session from bootstrap-data (narrator from studio_context, may be None)
  - runs each command line through the kernel
  - opens a CLI portal, waits for sync
  - requests one monologue step and prints the response
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studio_context import NARRATOR  # noqa: E402
from studio_session import StudioSession  # noqa: E402
from sync.channel import BroadcastChannel  # noqa: E402
from sync.portal import PortalContext, SyncTimeout  # noqa: E402
from ui.cli_provider import CLIPortalView  # noqa: E402

DEFAULT_COMMANDS = [
    "netscan --deep target.alpha",
    "logctl create audit /var/log/audit.log",
    "logctl create '/var/log/note.txt'",
]


async def run(commands: List[str], portal_name: str = "metis") -> None:
    session = StudioSession.from_data(narrator=NARRATOR)
    for line in commands:
        result = session.process_command(line)
        print(f"> {line}")
        print(f"[{result.role}] {result.text}")

    channel = BroadcastChannel("lia-sync")
    session.attach_primary(channel)
    portal = PortalContext(portal_name, channel, CLIPortalView(portal_name))
    portal.start()
    try:
        await portal.wait_synced()
    except SyncTimeout:
        return

    portal.send_action("monologue")
    await portal.wait_action()
    portal.close()
    await asyncio.sleep(0)


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(run(sys.argv[1:] or DEFAULT_COMMANDS))


if __name__ == "__main__":
    if os.getenv("DEBUGPY"):
        import debugpy

        debugpy.listen(("0.0.0.0", 5678))
        print("Waiting for debugger attach on 5678...")
        debugpy.wait_for_client()
        print("Debugger attached.")
    main()
