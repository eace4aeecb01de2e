"""
Path Store
----------
Flat mapping of slash-delimited paths to content.
Content is one of: text (str), binary blob (bytes) or a structured array (list).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

Content = Union[str, bytes, List[Any]]

PREVIEW_ROOT = "/0index.html"

TEXT_MIME_PREFIXES = ("text/",)
TEXT_MIME_TYPES = {"application/json", "application/javascript"}


def get_mime_type(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path.rsplit("/", 1)[-1] else ""
    if ext == "html":
        return "text/html"
    if ext == "css":
        return "text/css"
    if ext == "js":
        return "application/javascript"
    if ext == "json":
        return "application/json"
    if ext in {"md", "txt", "log"}:
        return "text/plain"
    if ext in {"png", "gif", "webp"}:
        return f"image/{ext}"
    if ext in {"jpg", "jpeg"}:
        return "image/jpeg"
    return "application/octet-stream"


def is_text_mime(mime: str) -> bool:
    return mime.startswith(TEXT_MIME_PREFIXES) or mime in TEXT_MIME_TYPES


class PathStore:
    def __init__(self, files: Optional[Dict[str, Content]] = None):
        self._files: Dict[str, Content] = {}
        for path, content in (files or {}).items():
            self.set(path, content)

    def get(self, path: str) -> Optional[Content]:
        return self._files.get(path)

    def set(self, path: str, content: Content) -> None:
        if not isinstance(content, (str, bytes, list)):
            raise TypeError(f"Unsupported content for {path}: {type(content).__name__}")
        self._files[path] = content

    def delete(self, path: str) -> bool:
        if path in self._files:
            del self._files[path]
            return True
        return False

    def paths(self) -> List[str]:
        return sorted(self._files)

    def items(self) -> Iterator:
        return iter(sorted(self._files.items()))

    def __contains__(self, path: str) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def read_text(self, path: str) -> Optional[str]:
        """
        Text view of an entry. Structured arrays render as indented JSON,
        blobs decode as UTF-8 (replacement chars for undecodable bytes).
        """
        content = self._files.get(path)
        if content is None:
            return None
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return json.dumps(content, indent=2)
        return content.decode("utf-8", errors="replace")

    def read_json(self, path: str) -> Any:
        text = self.read_text(path)
        if text is None:
            raise FileNotFoundError(f"No such entry in path store: {path}")
        return json.loads(text)

    def size_of(self, path: str) -> int:
        content = self._files.get(path)
        if content is None:
            return 0
        if isinstance(content, bytes):
            return len(content)
        if isinstance(content, str):
            return len(content.encode("utf-8"))
        return len(json.dumps(content))
