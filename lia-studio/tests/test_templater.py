import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engine.templater import render  # noqa: E402


class TestRender(unittest.TestCase):
    def test_replaces_every_occurrence(self):
        self.assertEqual(render("%%a%%-%%a%%", {"a": "x"}), "x-x")

    def test_unresolved_left_verbatim(self):
        self.assertEqual(render("probe %%target%% %%missing%%", {"target": "alpha"}), "probe alpha %%missing%%")

    def test_flags_and_numbers(self):
        self.assertEqual(render("%%deep%% %%n%%", {"deep": True, "n": 3}), "true 3")

    def test_empty_template(self):
        self.assertEqual(render("", {"a": 1}), "")


if __name__ == "__main__":
    unittest.main()
