import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional

from sync.messages import SyncSnapshot
from vfs.path_store import PathStore, get_mime_type, is_text_mime

logger = logging.getLogger(__name__)


def binary_placeholder(mime: str) -> str:
    return f"[Binary Content: {mime}]"


def serializable_content(path: str, content: Any) -> Any:
    """
    Text and structured arrays pass through (copied). Binary content becomes
    text when its mime type is textual and it decodes cleanly, else a
    placeholder. Never raises.
    """
    if isinstance(content, (bytes, bytearray)):
        mime = get_mime_type(path)
        if is_text_mime(mime):
            try:
                return bytes(content).decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Undecodable text blob %s; sending placeholder", path)
        return binary_placeholder(mime)
    if isinstance(content, (str, list, dict)):
        try:
            return deepcopy(content)
        except Exception:
            logger.debug("Could not copy %s; sending placeholder", path)
            return binary_placeholder(get_mime_type(path))
    return binary_placeholder(get_mime_type(path))


def build_snapshot(
    state: Dict[str, Any],
    store: PathStore,
    histories: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    log: Optional[List[Dict[str, Any]]] = None,
) -> SyncSnapshot:
    files = {path: serializable_content(path, content) for path, content in store.items()}
    return SyncSnapshot(
        state=deepcopy(state),
        histories=deepcopy(histories or {}),
        log=deepcopy(log or []),
        files=files,
    )
