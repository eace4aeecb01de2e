"""
Bootstrap Loader
----------------
Populates a path store from the data directory manifest.
No studio logic here. Pure data wiring.
"""

import html
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from vfs.path_store import PREVIEW_ROOT, PathStore, get_mime_type, is_text_mime

logger = logging.getLogger(__name__)

DEFAULT_DATA_ROOT = Path(__file__).resolve().parents[1] / "bootstrap-data"

KERNEL_BOOTSTRAP_PATH = "/bootstrap/kernel/LIA_MASTER_BOOTSTRAP.json"
UTILITIES_PATH = "/bootstrap/kernel/LIA_UTILITIES.json"
PORTAL_PROMPT_TEMPLATE = "/prompts/{portal}_protocol_system_prompt.txt"


def data_root() -> Path:
    env = os.environ.get("LIA_STUDIO_DATA")
    return Path(env) if env else DEFAULT_DATA_ROOT


class BootstrapLoader:
    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.data_root = Path(root) if root else data_root()

    # ──────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────

    def load_manifest(self) -> List[Dict[str, str]]:
        path = self.data_root / "manifest.json"
        doc = json.loads(path.read_text(encoding="utf-8"))
        entries = doc.get("files") if isinstance(doc, dict) else doc
        if not isinstance(entries, list):
            raise ValueError(f"Manifest {path} must list files")
        out = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("path") or not entry.get("source"):
                raise ValueError(f"Bad manifest entry: {entry!r}")
            out.append({"path": entry["path"], "source": entry["source"]})
        return out

    def load_store(self) -> PathStore:
        """
        Returns a path store holding every manifest file plus the generated
        preview root.
        """
        store = PathStore()
        for entry in self.load_manifest():
            source = self.data_root / entry["source"]
            if not source.exists():
                logger.warning("Manifest source missing: %s", source)
                continue
            if is_text_mime(get_mime_type(entry["path"])):
                store.set(entry["path"], source.read_text(encoding="utf-8"))
            else:
                store.set(entry["path"], source.read_bytes())
        refresh_preview_index(store)
        logger.info("Bootstrapped %d files from %s", len(store), self.data_root)
        return store


def generate_index_html(paths: List[str]) -> str:
    items = "\n".join(
        f'    <li><a href="{html.escape(p)}">{html.escape(p)}</a></li>'
        for p in sorted(paths) if p != PREVIEW_ROOT
    )
    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"utf-8\"><title>LIA Studio</title></head>\n"
        f"<body>\n  <h1>Virtual File System</h1>\n  <ul>\n{items}\n  </ul>\n</body>\n</html>\n"
    )


def refresh_preview_index(store: PathStore) -> None:
    store.set(PREVIEW_ROOT, generate_index_html(store.paths()))