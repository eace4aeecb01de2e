import json
import os
import sys
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ai.narrator import KernelNarrator, load_api_key, model_name, to_api_messages  # noqa: E402


def fake_response(text):
    content = SimpleNamespace(type="output_text", text=text)
    return SimpleNamespace(output=[SimpleNamespace(type="message", content=[content])])


def make_narrator(text):
    client = MagicMock()
    client.responses.create.return_value = fake_response(text)
    return KernelNarrator(client, model="test-model"), client


class TestInterpret(unittest.TestCase):
    def test_parses_narrative_and_state(self):
        narrator, client = make_narrator(json.dumps({"narrative": "ok", "newState": {"dp": 2}}))
        history = [
            {"role": "user", "parts": [{"text": "hello"}]},
            {"role": "error", "parts": [{"text": "local only"}]},
        ]
        result = narrator.interpret("SYSTEM", history)
        self.assertEqual(result, {"narrative": "ok", "newState": {"dp": 2}})

        kwargs = client.responses.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["input"][0]["role"], "system")
        self.assertEqual(kwargs["input"][1:], [{"role": "user", "content": "hello"}])

    def test_bad_json_raises(self):
        narrator, _ = make_narrator("not json")
        with self.assertRaises(ValueError):
            narrator.interpret("SYSTEM", [])

    def test_incomplete_json_raises(self):
        narrator, _ = make_narrator(json.dumps({"narrative": "only"}))
        with self.assertRaises(ValueError):
            narrator.interpret("SYSTEM", [])

    def test_monologue_returns_text(self):
        narrator, _ = make_narrator("  a thought  ")
        self.assertEqual(narrator.monologue("SYSTEM", "netscan alpha"), "a thought")


class TestConfig(unittest.TestCase):
    def test_model_roles_mapped(self):
        out = to_api_messages([{"role": "model", "parts": [{"text": "hi"}]}])
        self.assertEqual(out, [{"role": "assistant", "content": "hi"}])

    def test_env_key_first(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            self.assertEqual(load_api_key(), "sk-test")

    def test_model_from_env(self):
        with patch.dict(os.environ, {"LIA_STUDIO_MODEL": "gpt-test"}):
            self.assertEqual(model_name(), "gpt-test")


if __name__ == "__main__":
    unittest.main()
