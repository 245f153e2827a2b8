from __future__ import annotations

"""HTTP client for the text-generation endpoint behind the session coach."""

import json
import os
import re
import time
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from dotenv import load_dotenv

load_dotenv()


class ReportServiceError(RuntimeError):
    """The endpoint could not produce a report."""


class ReportClient:
    """
    Gemini-style ``generateContent`` REST call:
    POST {api_url}?key=... with ``contents``/``generationConfig``, reply text at
    ``candidates[0].content.parts[0].text``.
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        *,
        api_key_env: str = "GEMINI_API_KEY",
        timeout_s: float = 30,
        temperature: float = 0.7,
        max_output_tokens: int = 300,
        retries: int = 2,
        http: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_url = api_url
        self.api_key = (api_key or os.getenv(api_key_env, "")).strip()
        self.api_key_env = api_key_env
        self.timeout_s = timeout_s
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.retries = max(0, int(retries))
        self.http = http or requests
        self.sleep = sleep

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any], **kwargs: Any) -> "ReportClient":
        report = cfg.get("report", {})
        return cls(
            report.get("api_url", ""),
            api_key_env=report.get("api_key_env", "GEMINI_API_KEY"),
            timeout_s=report.get("timeout_s", 30),
            temperature=report.get("temperature", 0.7),
            max_output_tokens=report.get("max_output_tokens", 300),
            retries=report.get("retries", 2),
            **kwargs,
        )

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ReportServiceError(f"Missing {self.api_key_env} in environment (.env).")
        if not self.api_url:
            raise ReportServiceError("No report api_url configured.")

        last_err: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                r = self.http.post(
                    self.api_url,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=self._payload(prompt),
                    timeout=self.timeout_s,
                )
            except requests.RequestException as e:
                last_err = e
                self.sleep(1.0 + attempt * 1.0)
                continue
            if r.status_code == 429:
                # rate limited: back off and retry
                last_err = ReportServiceError("HTTP Error: 429")
                self.sleep(1.5 + attempt * 1.5)
                continue
            if r.status_code >= 500:
                last_err = ReportServiceError(f"HTTP Error: {r.status_code}")
                self.sleep(1.0 + attempt * 1.0)
                continue
            if r.status_code >= 400:
                raise ReportServiceError(f"HTTP Error: {r.status_code}")
            try:
                data = r.json()
            except ValueError as e:
                raise ReportServiceError(f"Invalid JSON from model endpoint: {e}") from e
            return self._reply_text(data)

        raise ReportServiceError(f"Report call failed: {last_err}")

    @staticmethod
    def _reply_text(data: Mapping[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ReportServiceError("No response received from the model")
        try:
            return str(candidates[0]["content"]["parts"][0]["text"])
        except (KeyError, IndexError, TypeError) as e:
            raise ReportServiceError(f"Malformed model response: {e!r}") from e

    @staticmethod
    def _extract_json(text: str) -> Optional[dict]:
        """First ``{...}`` object in ``text``; models often wrap JSON in prose."""
        if not text:
            return None
        m = re.search(r"\{.*\}", text, flags=re.DOTALL)
        if not m:
            return None
        try:
            obj = json.loads(m.group(0))
        except ValueError:
            return None
        return obj if isinstance(obj, dict) else None
