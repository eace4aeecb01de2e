import json
import random
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engine.catalog import FsAction, load_catalog, load_state_definitions  # noqa: E402
from engine.kernel import CommandKernel, apply_fs_actions  # noqa: E402
from engine.state import initialize_state  # noqa: E402
from vfs.path_store import PathStore  # noqa: E402

KERNEL_DIR = ROOT / "bootstrap-data" / "kernel"


def load_bootstrap():
    return json.loads((KERNEL_DIR / "LIA_MASTER_BOOTSTRAP.json").read_text(encoding="utf-8"))


class FakeNarrator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def interpret(self, system_prompt, history):
        self.calls.append((system_prompt, history))
        if self.error:
            raise self.error
        return self.result


class KernelTestCase(unittest.TestCase):
    def make_kernel(self, narrator=None):
        bootstrap = load_bootstrap()
        self.definitions = load_state_definitions(bootstrap)
        self.catalog = load_catalog((KERNEL_DIR / "LIA_UTILITIES.json").read_text(encoding="utf-8"))
        template = bootstrap["EMBEDDED_SYSTEM_PROMPTS"]["protocols"]["LIA_OS"]["prompt_template"]
        self.state = initialize_state(self.definitions, self.catalog)
        self.store = PathStore({"/var/log/kernel.log": "boot"})
        return CommandKernel(self.catalog, self.definitions, narrator=narrator, prompt_template=template, rng=random.Random(1))


class TestCatalogCommands(KernelTestCase):
    def test_deep_netscan_adds_exactly_one_dp(self):
        kernel = self.make_kernel()
        result = kernel.execute("netscan --deep target.alpha", self.state, self.store)
        self.assertEqual(result.role, "model")
        self.assertEqual(result.state["dp"], self.state["dp"] + 1.0)
        self.assertEqual(result.state["network_nodes"], ["target.alpha"])
        self.assertAlmostEqual(result.state["chaotic_entropy"], self.state["chaotic_entropy"] + 0.02)
        self.assertEqual(result.text, "[dmesg] netscan: probing target.alpha ... node registered.")

    def test_missing_parameter_leaves_store_and_state(self):
        kernel = self.make_kernel()
        before = dict(self.store.items())
        result = kernel.execute("logctl create '/var/log/note.txt'", self.state, self.store)
        self.assertEqual(result.role, "error")
        self.assertEqual(result.text, "[dmesg] command error: Missing required parameter: path")
        self.assertEqual(result.parsed.error_kind, "ParameterError")
        self.assertEqual(dict(self.store.items()), before)
        self.assertEqual(result.state, self.state)

    def test_logctl_lifecycle_touches_store(self):
        kernel = self.make_kernel()
        r1 = kernel.execute("logctl create audit /var/log/audit.log", self.state, self.store)
        self.assertEqual(r1.files_changed, [("create", "/var/log/audit.log")])
        self.assertEqual(self.store.get("/var/log/audit.log"), "[log audit] opened")
        self.assertIn("logd:audit", r1.state["active_processes"])

        r2 = kernel.execute('logctl append /var/log/audit.log "second line"', r1.state, self.store)
        self.assertEqual(r2.text, "[dmesg] logctl: appended to /var/log/audit.log")
        self.assertEqual(self.store.get("/var/log/audit.log"), "[log audit] opened\nsecond line")

        r3 = kernel.execute("logctl rm audit /var/log/audit.log", r2.state, self.store)
        self.assertNotIn("/var/log/audit.log", self.store)
        self.assertNotIn("logd:audit", r3.state["active_processes"])

    def test_generated_count_in_narrative(self):
        kernel = self.make_kernel()
        result = kernel.execute("fsck /var", self.state, self.store)
        self.assertRegex(result.text, r"/var swept, [1-5] orphaned inodes reclaimed\.")

    def test_stress_test_overrides(self):
        kernel = self.make_kernel()
        result = kernel.execute("system-stress-test dp=50 operational_mode=ALERT ghost=1 wp=abc", self.state, self.store)
        self.assertEqual(result.text, "[dmesg] System stress test complete. Applied 2 direct state overrides.")
        self.assertEqual(result.state["dp"], 50.0)
        self.assertEqual(result.state["operational_mode"], "ALERT")
        self.assertEqual(result.state["wp"], self.state["wp"])
        self.assertNotIn("ghost", result.state)


class TestFallback(KernelTestCase):
    def test_merges_known_keys_only(self):
        narrator = FakeNarrator(result={"narrative": "The kernel hums.", "newState": {"ecm": 0.5, "ghost": 1}})
        kernel = self.make_kernel(narrator)
        result = kernel.execute("how do you feel?", self.state, self.store)
        self.assertEqual(result.role, "model")
        self.assertEqual(result.text, "The kernel hums.")
        self.assertEqual(result.state["ecm"], 0.5)
        self.assertNotIn("ghost", result.state)

        system_prompt, history = narrator.calls[0]
        self.assertIn("DP: 0.000", system_prompt)
        self.assertIn("Operator mode: Send", system_prompt)
        self.assertIn("how do you feel?", system_prompt)
        self.assertEqual(history, [{"role": "user", "parts": [{"text": "how do you feel?"}]}])

    def test_narrator_failure_raises_entropy(self):
        kernel = self.make_kernel(FakeNarrator(error=ValueError("Invalid JSON")))
        result = kernel.execute("???", self.state, self.store)
        self.assertEqual(result.role, "error")
        self.assertTrue(result.text.startswith("[System Alert]"))
        self.assertIn("Invalid JSON", result.text)
        self.assertAlmostEqual(result.state["chaotic_entropy"], self.state["chaotic_entropy"] + 0.05)

    def test_entropy_capped_at_range(self):
        kernel = self.make_kernel()
        state = dict(self.state, chaotic_entropy=0.98)
        result = kernel.execute("anything", state, self.store)
        self.assertEqual(result.state["chaotic_entropy"], 1.0)
        self.assertIn("Current Entropy: 1.000", result.text)


class TestFsActions(unittest.TestCase):
    def test_create_does_not_overwrite(self):
        store = PathStore({"/a.txt": "keep"})
        changed = apply_fs_actions([FsAction(action="create", path_template="/a.txt", content_template="new")], {}, store)
        self.assertEqual(changed, [])
        self.assertEqual(store.get("/a.txt"), "keep")

    def test_unresolved_path_skipped(self):
        store = PathStore()
        changed = apply_fs_actions([FsAction(action="create", path_template="%%path%%")], {}, store)
        self.assertEqual(changed, [])
        self.assertEqual(len(store), 0)

    def test_append_to_array(self):
        store = PathStore({"/w.json": ["a"]})
        apply_fs_actions([FsAction(action="append", path_template="/w.json", content_template="%%m%%")], {"m": "b"}, store)
        self.assertEqual(store.get("/w.json"), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
