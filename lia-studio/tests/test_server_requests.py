import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class TestServerRequests(unittest.TestCase):
    def test_command_request_defaults_operator(self):
        import server  # noqa: E402

        req = server.CommandRequest(session_id="s", line="netscan alpha")
        self.assertEqual(req.operator, "Send")

    def test_command_endpoint_runs_kernel(self):
        import server  # noqa: E402

        server.sessions.pop("test-cmd", None)
        out = server.command(server.CommandRequest(session_id="test-cmd", line="netscan --deep target.alpha"))
        self.assertEqual(out["role"], "model")
        self.assertEqual(out["state"]["dp"], 1.0)
        self.assertIn("hud_update", [e["type"] for e in out["events"]])

        out = server.command(server.CommandRequest(session_id="test-cmd", line="logctl create '/var/log/note.txt'"))
        self.assertEqual(out["role"], "error")
        self.assertEqual(out["text"], "[dmesg] command error: Missing required parameter: path")

    def test_shell_and_tree(self):
        import server  # noqa: E402

        server.shell(server.ShellRequest(session_id="test-shell", line='echo "x" > /sandbox/x.txt'))
        tree = server.tree(server.SessionRequest(session_id="test-shell"))
        sandbox = next(c for c in tree["children"] if c["name"] == "sandbox")
        self.assertIn("x.txt", [c["name"] for c in sandbox["children"]])


if __name__ == "__main__":
    unittest.main()
