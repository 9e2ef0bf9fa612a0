"""
OpenAI GPT client shared by question generation and text-answer grading.

Used by:
  - generation/question_generator.py
  - grading/ai_grader.py

One GptClient is created per application (app.state) and injected into the
collaborators; the underlying AsyncOpenAI handle is created lazily on first
call so the app can boot without credentials.

Model: gpt-4o-mini  (override with GPT_MODEL env var, e.g. "gpt-4o")
"""

import json
import os
import re
from typing import Any, Optional

from openai import AsyncOpenAI

# ── Model config ───────────────────────────────────────────────────────────────
GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")


class GptClient:
    def __init__(self, api_key: Optional[str] = None, model: str = GPT_MODEL):
        self._api_key = api_key
        self.model = model
        self._client: Optional[AsyncOpenAI] = None

    @classmethod
    def from_env(cls) -> "GptClient":
        return cls(api_key=os.getenv("OPENAI_API_KEY"), model=GPT_MODEL)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY is not set. Add it to your .env file."
                )
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def complete(
        self,
        prompt: str,
        system: str = "You are a helpful academic assistant. Output only what is asked.",
        temperature: float = 0.4,
        max_tokens: int = 2048,
    ) -> str:
        """
        Call OpenAI Chat Completions and return the assistant message text.

        Args:
            prompt:      User-turn message (the actual instruction/question)
            system:      System prompt
            temperature: Sampling temperature (lower = more deterministic)
            max_tokens:  Max response tokens

        Returns:
            Raw string content of the model response
        """
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None


def extract_json(raw: str, opener: str = "{") -> Any:
    """
    Pull the outermost JSON object ("{") or array ("[") out of a model reply,
    tolerating markdown fences and chatter around it.
    Raises ValueError when nothing parsable is found.
    """
    closer = "}" if opener == "{" else "]"
    text = (raw or "").strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"\s*```$", "", text, flags=re.MULTILINE)
    start = text.find(opener)
    end = text.rfind(closer) + 1
    if start == -1 or end <= start:
        raise ValueError(f"No JSON {opener}{closer} block in model response")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in model response: {e}") from e
