"""
Kernel Narrator
---------------
LLM collaborator for input the catalog does not cover, and for portal
monologues. Prompt text lives in the path store, not here.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

JSON_CONTRACT = """
Respond with a single JSON object:
{"narrative": "<text shown to the operator>", "newState": {"<metric id>": <value>, ...}}
Only include metric ids that already exist in the state string.
"""


def load_api_key() -> Optional[str]:
    # Environment first
    key = os.environ.get("OPENAI_API_KEY")
    if key:
        return key
    # fallback to lia-studio/apiKey file
    key_path = Path(__file__).resolve().parent.parent / "apiKey"
    if key_path.exists():
        val = key_path.read_text(encoding="utf-8").strip()
        if val:
            return val
    return None


def model_name() -> str:
    return os.environ.get("LIA_STUDIO_MODEL") or DEFAULT_MODEL


def to_api_messages(history: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Chat history -> Responses API input. Only user/model turns are sent;
    error and system bubbles are local.
    """
    out = []
    for msg in history or []:
        role = msg.get("role")
        if role not in {"user", "model"}:
            continue
        parts = msg.get("parts") or []
        text = " ".join(p.get("text", "") for p in parts if isinstance(p, dict))
        out.append({"role": "assistant" if role == "model" else "user", "content": text})
    return out


class KernelNarrator:
    def __init__(self, openai_client, model: str = DEFAULT_MODEL, max_output_tokens: int = 2048):
        """
        openai_client: already-authenticated OpenAI client
        """
        self.client = openai_client
        self.model = model
        self.max_output_tokens = max_output_tokens

    def interpret(self, system_prompt: str, history: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Free-form kernel turn. Returns {"narrative": str, "newState": dict}.
        Raises ValueError when the model answers with anything else.
        """
        response = self.client.responses.create(
            model=self.model,
            input=[{"role": "system", "content": f"{system_prompt.strip()}\n\n{JSON_CONTRACT.strip()}"}]
            + to_api_messages(history),
            text={"format": {"type": "json_object"}},
            max_output_tokens=self.max_output_tokens,
        )
        raw = self._extract_text(response)
        try:
            result = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON response from kernel model: {e}") from e
        if not isinstance(result, dict) or not result.get("narrative") or not isinstance(result.get("newState"), dict):
            raise ValueError("Invalid or incomplete JSON response from kernel model.")
        return result

    def monologue(self, system_prompt: str, prompt: str) -> str:
        """One reasoning step for a portal entity."""
        response = self.client.responses.create(
            model=self.model,
            input=[
                {"role": "system", "content": system_prompt.strip()},
                {"role": "user", "content": prompt or "(no recorded user action)"},
            ],
            max_output_tokens=self.max_output_tokens,
        )
        return self._extract_text(response)

    # =========================
    # INTERNALS
    # =========================

    def _extract_text(self, response) -> str:
        """
        Safely extract text from OpenAI Responses API output.
        """
        parts = []
        for item in response.output:
            if getattr(item, "type", None) == "message":
                for c in item.content:
                    if getattr(c, "type", None) == "output_text":
                        parts.append(c.text)
        return " ".join(parts).strip()
