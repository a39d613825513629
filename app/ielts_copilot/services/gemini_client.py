"""Client wrapper around the Google Gemini Generative Language API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from .errors import CompletionFailure, ConfigurationError


class GeminiClient:
    """Single-shot, non-streaming text generation via Gemini."""

    DEFAULT_MODEL = "gemini-2.5-pro"
    DEFAULT_TIMEOUT = 180
    API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.api_root = api_url or f"{self.API_BASE}/{self.model}:generateContent"
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "GeminiClient":
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            model=config.get("GEMINI_MODEL"),
            api_url=config.get("GEMINI_API_URL"),
            timeout=config.get("GEMINI_TIMEOUT_SECONDS"),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def generate_text(
        self,
        parts: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        temperature: float = 0.5,
        top_p: float = 0.95,
        thinking_budget: Optional[int] = 32768,
    ) -> str:
        """Send the user parts and return the complete response text.

        Args:
            parts: Ordered user message parts (inline images, then one text part)
            system_instruction: Instruction sent in the dedicated system channel
            temperature: Sampling temperature
            top_p: Nucleus sampling threshold
            thinking_budget: Internal reasoning token allowance, None to omit

        Returns:
            The model's full text response

        Raises:
            CompletionFailure: on any transport, HTTP, quota or empty-response failure
        """
        if not self.is_configured:
            current_app.logger.error("Gemini API not configured - API key missing")
            raise CompletionFailure()

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "topP": top_p,
        }
        if thinking_budget is not None:
            generation_config["thinkingConfig"] = {"thinkingBudget": thinking_budget}

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        data = self._request(payload)
        text, finish_reason = self._extract_text_and_finish_reason(data)

        if not text:
            candidates = data.get("candidates") or []
            current_app.logger.error(
                "Gemini response contained empty text. Finish reason: %s, Candidates count: %s, Full response: %s",
                finish_reason,
                len(candidates),
                str(data)[:500],
            )
            raise CompletionFailure()

        if finish_reason and finish_reason != "STOP":
            current_app.logger.warning("Gemini finished with reason %s; response may be truncated.", finish_reason)
        return text

    def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Perform a single HTTP request to Gemini."""
        try:
            response = requests.post(
                self.api_root,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            current_app.logger.error("Gemini HTTP error: %s - %s", status_code, exc)
            raise CompletionFailure() from exc
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            current_app.logger.error("Gemini request failed due to timeout/connection issue: %s", exc)
            raise CompletionFailure() from exc
        except requests.exceptions.RequestException as exc:
            current_app.logger.error("Gemini request failed with unexpected error: %s", exc)
            raise CompletionFailure() from exc

        try:
            data = response.json()
        except ValueError as exc:
            current_app.logger.error("Failed to parse Gemini response as JSON: %s", exc)
            raise CompletionFailure() from exc
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _extract_text_and_finish_reason(data: Dict[str, Any]) -> tuple[str, Optional[str]]:
        """Extract the first non-empty text from candidates and return with finish reason.

        Thought-summary parts are skipped so only the visible answer is returned.
        """
        candidates = data.get("candidates") or []
        if not candidates:
            prompt_feedback = data.get("promptFeedback", {})
            block_reason = prompt_feedback.get("blockReason")
            safety_ratings = prompt_feedback.get("safetyRatings", [])
            if block_reason:
                current_app.logger.error(
                    "Gemini blocked request. Reason: %s, Safety ratings: %s",
                    block_reason,
                    safety_ratings,
                )
            else:
                current_app.logger.warning("Gemini response missing candidates. Full response: %s", data)
            return "", None

        fallback_finish: Optional[str] = None
        for cand in candidates:
            finish_reason = cand.get("finishReason")
            if not fallback_finish:
                fallback_finish = finish_reason
            parts = (cand.get("content") or {}).get("parts", [])
            collected = []
            for part in parts:
                if not isinstance(part, dict) or part.get("thought"):
                    continue
                txt = part.get("text")
                if isinstance(txt, str) and txt.strip():
                    collected.append(txt)
            if collected:
                return "".join(collected), finish_reason

        return "", fallback_finish


def create_gemini_client(config: Dict[str, Any]) -> GeminiClient:
    """Build the process-wide client, failing fast when the credential is missing."""
    client = GeminiClient.from_config(config)
    if not client.is_configured:
        raise ConfigurationError("GEMINI_API_KEY environment variable not set")
    return client


def get_gemini_client() -> GeminiClient:
    """Return the client created at startup for the current app."""
    client = current_app.extensions.get("gemini_client")
    if client is None:
        client = create_gemini_client(current_app.config)
        current_app.extensions["gemini_client"] = client
    return client
