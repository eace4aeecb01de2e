import random
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engine.catalog import load_catalog  # noqa: E402
from engine.resolution import PARAMETER_ERROR, resolve_command, tokenize  # noqa: E402


def load_utilities():
    return load_catalog((ROOT / "bootstrap-data" / "kernel" / "LIA_UTILITIES.json").read_text(encoding="utf-8"))


class TestTokenize(unittest.TestCase):
    def test_quoted_tokens_stay_whole(self):
        self.assertEqual(
            tokenize("""logctl append /var/log/a.log "two words" 'and three more'"""),
            ["logctl", "append", "/var/log/a.log", "two words", "and three more"],
        )

    def test_whitespace_only(self):
        self.assertEqual(tokenize("   "), [])


class TestResolveCommand(unittest.TestCase):
    def setUp(self):
        self.catalog = load_utilities()

    def test_flag_before_positional(self):
        parsed = resolve_command("netscan --deep target.alpha", self.catalog)
        self.assertTrue(parsed.ok)
        self.assertEqual(parsed.utility.command_name, "netscan")
        self.assertEqual(parsed.params, {"target": "target.alpha", "deep": True})

    def test_short_flag(self):
        parsed = resolve_command("netscan target.beta -d", self.catalog)
        self.assertEqual(parsed.params, {"target": "target.beta", "d": True})

    def test_sub_command(self):
        parsed = resolve_command("logctl create audit /var/log/audit.log", self.catalog)
        self.assertTrue(parsed.ok)
        self.assertEqual(parsed.command.cmd, "create")
        self.assertEqual(parsed.params, {"log_id": "audit", "path": "/var/log/audit.log"})

    def test_missing_parameter_returns_error_without_params(self):
        parsed = resolve_command("logctl create '/var/log/note.txt'", self.catalog)
        self.assertFalse(parsed.ok)
        self.assertEqual(parsed.error, "Missing required parameter: path")
        self.assertEqual(parsed.error_kind, PARAMETER_ERROR)
        self.assertEqual(parsed.params, {})

    def test_missing_first_parameter_drops_followers(self):
        for line in ["logctl create", "logctl create --force", "logctl append"]:
            parsed = resolve_command(line, self.catalog)
            self.assertFalse(parsed.ok, line)
            self.assertEqual(parsed.params, {}, line)

    def test_no_match_returns_none(self):
        self.assertIsNone(resolve_command("hello kernel, how are you?", self.catalog))
        self.assertIsNone(resolve_command("logctl", self.catalog))
        self.assertIsNone(resolve_command("netscan x", None))

    def test_generated_params_for_fs_tools(self):
        parsed = resolve_command("fsck /var", self.catalog, rng=random.Random(3))
        self.assertTrue(parsed.ok)
        self.assertIn(parsed.params["files_found_count"], range(1, 6))
        self.assertEqual(parsed.params["dir"], "/var")


if __name__ == "__main__":
    unittest.main()
