from ui.events import emit_event, emit_history_update, emit_portal_error
from ui.provider import PortalView


class WebPortalView(PortalView):
    def __init__(self, session, name="portal"):
        self.session = session
        self.name = name

    def render_all(self, snapshot):
        emit_event(self, {
            "type": "portal_synced",
            "portal": self.name,
            "snapshot": snapshot,
        })

    def render_history(self, key, history):
        emit_history_update(self, key, history)

    def set_input_enabled(self, enabled):
        emit_event(self, {
            "type": "input_state",
            "portal": self.name,
            "enabled": enabled,
        })

    def error(self, text):
        emit_portal_error(self, text)
