# drivetest_AnalyticsReporter/core/refine.py
from __future__ import annotations
from dataclasses import dataclass
import json
import logging
import os
import requests

from .errors import RemoteRefinerFailure

_LOG = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
SYSTEM_PROMPT = ("You are a telecom analytics copilot. Be concise, numeric, and accurate. "
                 "Always ground answers in the provided context. Throughput is in Mbps unless stated.")


@dataclass
class RemoteRefiner:
    """
    Optional LLM pass over an already computed local answer.
    refine() returns replacement text or None; it never raises.
    """
    api_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    timeout_s: float | None = None
    enabled: bool = True

    @classmethod
    def from_config(cls, cfg: dict | None) -> "RemoteRefiner":
        sec = (cfg or {}).get("refiner", {}) or {}
        key_env = str(sec.get("api_key_env", "OPENAI_API_KEY"))
        timeout = sec.get("timeout_s")
        return cls(
            api_key=os.getenv(key_env, ""),
            endpoint=str(sec.get("endpoint", DEFAULT_ENDPOINT)),
            model=str(sec.get("model", "gpt-4o-mini")),
            temperature=float(sec.get("temperature", 0.2)),
            timeout_s=float(timeout) if timeout is not None else None,
            enabled=bool(sec.get("enabled", False)),
        )

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.api_key)

    def _payload(self, question: str, context: dict, local_answer: str) -> dict:
        user = (f"User question: {question}\n\n"
                f"Context:\n{json.dumps(context, indent=2, default=str)}\n\n"
                f"A quick local computation says:\n{local_answer}")
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user},
            ],
            "temperature": self.temperature,
        }

    def _post(self, payload: dict) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            resp = requests.post(self.endpoint, headers=headers, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise RemoteRefinerFailure(f"request failed: {e}") from e
        if resp.status_code != 200:
            raise RemoteRefinerFailure(f"LLM request failed ({resp.status_code}): {resp.text[:200]}")
        try:
            data = resp.json()
            return str(data["choices"][0]["message"]["content"] or "").strip()
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RemoteRefinerFailure(f"unexpected response structure: {e}") from e

    def refine(self, question: str, context: dict, local_answer: str) -> str | None:
        if not self.available:
            return None
        try:
            text = self._post(self._payload(question, context, local_answer))
        except RemoteRefinerFailure as e:
            _LOG.warning("remote refinement discarded: %s", e)
            return None
        if not text or text == local_answer:
            return None
        return text
