import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sync.snapshot import build_snapshot, serializable_content  # noqa: E402
from vfs.path_store import PathStore  # noqa: E402


class TestSnapshot(unittest.TestCase):
    def make_store(self):
        return PathStore({
            "/notes.md": "# notes",
            "/data.json": b'{"a": 1}',
            "/broken.txt": b"\xff\xfe\x00bad",
            "/img/logo.png": b"\x89PNG\r\n\x1a\n",
            "/whispers.json": ["one"],
        })

    def test_binary_textified_or_placeholder(self):
        snap = build_snapshot({"dp": 1.0}, self.make_store())
        files = snap.files
        self.assertEqual(files["/notes.md"], "# notes")
        self.assertEqual(files["/data.json"], '{"a": 1}')
        self.assertEqual(files["/broken.txt"], "[Binary Content: text/plain]")
        self.assertEqual(files["/img/logo.png"], "[Binary Content: image/png]")
        self.assertEqual(files["/whispers.json"], ["one"])

    def test_snapshot_is_deep_copy(self):
        state = {"nodes": ["a"]}
        histories = {"kernel": [{"role": "user", "parts": [{"text": "hi"}]}]}
        store = self.make_store()
        snap = build_snapshot(state, store, histories)
        state["nodes"].append("b")
        histories["kernel"].clear()
        store.get("/whispers.json").append("two")
        self.assertEqual(snap.state["nodes"], ["a"])
        self.assertEqual(len(snap.histories["kernel"]), 1)
        self.assertEqual(snap.files["/whispers.json"], ["one"])

    def test_serializes_to_json(self):
        snap = build_snapshot({"dp": 1.0}, self.make_store(), log=[{"type": "kernel", "text": "x"}])
        json.dumps(snap.model_dump(mode="json"))

    def test_unknown_content_never_raises(self):
        self.assertEqual(serializable_content("/x.bin", object()), "[Binary Content: application/octet-stream]")


if __name__ == "__main__":
    unittest.main()
