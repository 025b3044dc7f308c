"""
Remote generative-language collaborator (Gemini REST API via httpx).

Equation solving, the math-assistant chat and long-division walkthroughs
are not computed locally: each is one prompt sent to the model and one
text answer (or a stream of text chunks) back.  Every failure surfaces as
``RemoteSolverError``.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from engine.errors import RemoteSolverError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"

SOLVER_INSTRUCTION = (
    "You are an algebra solver. When given an equation, solve for the variable(s). "
    "Your response must only be the final answer for the variable, for example: 'x = 3'. "
    "If there are multiple solutions, separate them with a comma, for example: "
    "'x = 2, x = -2'. Do not include any explanations, apologies, or conversational "
    "text. Only provide the result."
)

ASSISTANT_INSTRUCTION = (
    "You are a helpful and friendly math assistant. Your goal is to help users "
    "understand mathematical concepts. When asked to solve a problem, provide a clear, "
    "step-by-step explanation. Format your answers clearly, using markdown for things "
    "like code blocks for equations or lists for steps. Use **text** for bolding."
)

LONG_DIVISION_INSTRUCTION = (
    "You are a math tutor. Your task is to provide the full step-by-step process of "
    "long division as you would write it on paper. Use monospaced formatting, ensuring "
    "all numbers, subtraction lines, and the final remainder are perfectly aligned. Do "
    "not include any other explanations, conversational text, or introductions. Only "
    "provide the formatted long division calculation."
)

ASSISTANT_GREETING = "Hello! How can I help you with math today?"
ASSISTANT_ERROR = "Sorry, I encountered an error. Please try again."
LONG_DIVISION_ERROR = "An error occurred while calculating. Please try again."

QUICK_QUESTIONS = (
    "What is the quadratic formula?",
    "Solve 2x + 5 = 15 for x.",
    "Explain the Pythagorean theorem.",
    "How do I calculate the area of a circle?",
)

_NON_NEGATIVE_INT = re.compile(r"^\d+$")


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "model"
    text: str


def _extract_text(payload: dict) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError) as exc:
        raise RemoteSolverError(f"Unexpected response payload: {exc!r}") from exc


def _request_body(instruction: str, contents: list) -> dict:
    return {
        "system_instruction": {"parts": [{"text": instruction}]},
        "contents": contents,
    }


def _user_turn(text: str) -> dict:
    return {"role": "user", "parts": [{"text": text}]}


class GeminiClient:
    """Thin async client for the three remote operations."""

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL,
                 base_url: str = DEFAULT_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @classmethod
    def from_env(cls) -> "GeminiClient":
        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
            model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
        )

    def _client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise RemoteSolverError("No API key configured (set GEMINI_API_KEY or API_KEY).")
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"x-goog-api-key": self.api_key},
            transport=self._transport,
            timeout=None,
        )

    async def _generate(self, instruction: str, prompt: str) -> str:
        body = _request_body(instruction, [_user_turn(prompt)])
        try:
            async with self._client() as client:
                resp = await client.post(f"/models/{self.model}:generateContent", json=body)
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteSolverError(f"generateContent failed: {exc}") from exc
        return _extract_text(payload).strip()

    async def solve(self, equation: str) -> str:
        """Ask the model for the solution of *equation*, e.g. ``x = 3``."""
        answer = await self._generate(SOLVER_INSTRUCTION, f"Solve this equation: {equation}")
        if not answer:
            raise RemoteSolverError("Empty answer from solver")
        return answer

    async def long_division(self, dividend: str, divisor: str) -> str:
        """Formatted long-division working for two non-negative integers.

        Input is checked locally first; bad input raises ``ValueError``.
        """
        if not _NON_NEGATIVE_INT.match(dividend) or not _NON_NEGATIVE_INT.match(divisor):
            raise ValueError("Invalid input: Please use non-negative integers.")
        if int(divisor) == 0:
            raise ValueError("Error: Cannot divide by zero.")
        return await self._generate(
            LONG_DIVISION_INSTRUCTION,
            f"Solve the long division problem: {dividend} / {divisor}.",
        )

    async def chat(self, history: list, message: str) -> AsyncIterator[str]:
        """Stream the assistant's reply to *message* chunk by chunk."""
        contents = []
        for turn in history:
            if not turn.text or (not contents and turn.role != "user"):
                continue
            contents.append({"role": turn.role, "parts": [{"text": turn.text}]})
        contents.append(_user_turn(message))
        body = _request_body(ASSISTANT_INSTRUCTION, contents)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"/models/{self.model}:streamGenerateContent",
                    params={"alt": "sse"},
                    json=body,
                ) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        chunk = _extract_text(json.loads(line[len("data:"):]))
                        if chunk:
                            yield chunk.replace("$", "")
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteSolverError(f"streamGenerateContent failed: {exc}") from exc
