from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class PortalView(ABC):
    """
    Rendering surface of a portal. The portal context drives it; views only
    draw. Views may be CLI, Web, etc.
    """

    @abstractmethod
    def render_all(self, snapshot: Dict[str, Any]) -> None:
        """
        Full redraw from a sync snapshot (state, histories, log, files).
        """
        pass

    @abstractmethod
    def render_history(self, key: str, history: List[Dict[str, Any]]) -> None:
        pass

    @abstractmethod
    def set_input_enabled(self, enabled: bool) -> None:
        pass

    @abstractmethod
    def error(self, text: str) -> None:
        pass
