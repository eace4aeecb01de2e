import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vfs.path_store import PathStore  # noqa: E402
from vfs.shell import run_shell  # noqa: E402


def make_store():
    return PathStore({
        "/var/log/kernel.log": "boot ok",
        "/var/log/whispers.json": ["first"],
        "/README.md": "# readme",
        "/img/logo.png": b"\x89PNG\r\n",
    })


class TestShell(unittest.TestCase):
    def test_ls_root_lists_dirs_and_files(self):
        out = run_shell("ls", make_store())
        self.assertFalse(out["error"])
        self.assertEqual(out["output"].splitlines(), ["README.md", "img/", "var/"])

    def test_ls_missing(self):
        out = run_shell("ls /nope", make_store())
        self.assertTrue(out["error"])
        self.assertIn("No such file or directory", out["output"])

    def test_cat(self):
        self.assertEqual(run_shell("cat /var/log/kernel.log", make_store())["output"], "boot ok")
        self.assertTrue(run_shell("cat /missing", make_store())["error"])

    def test_echo_overwrites_text(self):
        store = make_store()
        out = run_shell('echo "hello world" > /var/log/kernel.log', store)
        self.assertFalse(out["error"])
        self.assertEqual(store.get("/var/log/kernel.log"), "hello world")

    def test_echo_appends_to_array(self):
        store = make_store()
        run_shell('echo "second" > /var/log/whispers.json', store)
        self.assertEqual(store.get("/var/log/whispers.json"), ["first", "second"])

    def test_state_prints_vector(self):
        out = run_shell("state", make_store(), {"dp": 2.0})
        self.assertEqual(json.loads(out["output"]), {"dp": 2.0})

    def test_unknown_command(self):
        out = run_shell("rm -rf /", make_store())
        self.assertTrue(out["error"])
        self.assertIn("Unknown command: rm", out["output"])

    def test_help_and_empty(self):
        self.assertIn("LIA Virtual Shell Commands", run_shell("help", make_store())["output"])
        self.assertEqual(run_shell("   ", make_store()), {"output": "", "error": False})


if __name__ == "__main__":
    unittest.main()
