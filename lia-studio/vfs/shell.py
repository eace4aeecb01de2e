import json
import shlex
from typing import Any, Dict, Optional

from vfs.path_store import PathStore

HELP_TEXT = "\n".join([
    "LIA Virtual Shell Commands:",
    "  `ls [path]`       - List files and directories. e.g., `ls /bootstrap`",
    "  `cat <file>`      - Display file content.",
    '  `echo "..." > <file>` - Write text to a file. Overwrites existing files, appends to arrays.',
    "  `state`           - Display the current system state vector.",
    "  `clear`           - Clear the terminal screen.",
    "  `help`            - Show this help message.",
    "",
    "  All paths are absolute from /.",
])


def _result(output: str, error: bool = False) -> Dict[str, Any]:
    return {"output": output, "error": error}


def list_dir(store: PathStore, path: Optional[str] = None) -> Dict[str, Any]:
    path = path or "/"
    prefix = path if path.endswith("/") else path + "/"
    entries = set()
    for p in store.paths():
        if not p.startswith(prefix):
            continue
        remaining = p[len(prefix):]
        if not remaining:
            continue
        first, sep, _ = remaining.partition("/")
        entries.add(first + ("/" if sep else ""))

    if not entries:
        if path in store:
            return _result(path.rsplit("/", 1)[-1])
        return _result(f"ls: cannot access '{path}': No such file or directory", True)
    return _result("\n".join(sorted(entries)))


def cat(store: PathStore, path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return _result("cat: missing operand", True)
    text = store.read_text(path)
    if text is None:
        return _result(f"cat: {path}: No such file or directory", True)
    return _result(text)


def echo(store: PathStore, line: str) -> Dict[str, Any]:
    head, sep, target = line.partition(" > ")
    if not sep or not target.strip():
        return _result("echo: syntax error", True)
    message = head[len("echo"):].strip()
    if len(message) >= 2 and message[0] == message[-1] == '"':
        message = message[1:-1]
    target = target.strip()

    existing = store.get(target)
    if isinstance(existing, list):
        store.set(target, existing + [message])
        return _result(f"→ Whisper written to {target}")
    store.set(target, message)
    return _result(f"→ Data written to {target}")


def run_shell(line: str, store: PathStore, state: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Minimal shell over the path store. Returns {"output": str, "error": bool}.
    """
    line = (line or "").strip()
    if not line:
        return _result("")
    try:
        tokens = shlex.split(line)
    except ValueError:
        tokens = line.split()
    op = tokens[0] if tokens else ""
    arg = tokens[1] if len(tokens) > 1 else None

    if op == "ls":
        return list_dir(store, arg)
    if op == "cat":
        return cat(store, arg)
    if op == "echo":
        return echo(store, line)
    if op == "state":
        return _result(json.dumps(state or {}, indent=2))
    if op == "clear":
        return _result("")
    if op == "help":
        return _result(HELP_TEXT)
    return _result(f"Unknown command: {op}. Type 'help' for a list of commands.", True)
