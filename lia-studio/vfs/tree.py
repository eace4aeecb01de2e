import logging
from typing import Any, Dict, Iterable

from vfs.path_store import PREVIEW_ROOT

logger = logging.getLogger(__name__)


def _folder(name: str, path: str) -> Dict[str, Any]:
    return {"name": name, "path": path, "type": "folder", "children": {}}


def _file(name: str, path: str) -> Dict[str, Any]:
    return {"name": name, "path": path, "type": "file"}


def _finalize(node: Dict[str, Any]) -> Dict[str, Any]:
    if node["type"] == "file":
        return dict(node)
    children = list(node["children"].values())
    folders = sorted((c for c in children if c["type"] == "folder"), key=lambda c: c["name"])
    files = sorted((c for c in children if c["type"] == "file"), key=lambda c: c["name"])
    return {
        "name": node["name"],
        "path": node["path"],
        "type": "folder",
        "children": [_finalize(c) for c in folders + files],
    }


def build_tree(paths: Iterable[str], exclude: Iterable[str] = (PREVIEW_ROOT,)) -> Dict[str, Any]:
    """
    Turn flat path keys into a folder/file tree.

    Folders sort before files, each group lexicographically. A path that is also
    a prefix of another path becomes a folder; the conflict is logged.
    Input order does not matter.
    """
    skip = set(exclude or ())
    root = _folder("", "/")

    for raw in sorted(set(paths)):
        if raw in skip:
            continue
        segments = [s for s in raw.split("/") if s]
        if not segments:
            logger.warning("Ignoring empty path %r in tree build", raw)
            continue

        parent = root
        prefix = ""
        for seg in segments[:-1]:
            prefix = f"{prefix}/{seg}"
            child = parent["children"].get(seg)
            if child is None:
                child = _folder(seg, prefix)
                parent["children"][seg] = child
            elif child["type"] == "file":
                logger.warning("Path %s is both a file and a folder; treating it as a folder", prefix)
                child = _folder(seg, prefix)
                parent["children"][seg] = child
            parent = child

        leaf = segments[-1]
        leaf_path = f"{prefix}/{leaf}"
        existing = parent["children"].get(leaf)
        if existing is not None and existing["type"] == "folder":
            logger.warning("Path %s is both a file and a folder; treating it as a folder", leaf_path)
            continue
        parent["children"][leaf] = _file(leaf, leaf_path)

    return _finalize(root)
