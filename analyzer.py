"""Generative-AI client that asks a model to flag duplicate items.

The analyzer is text in, text out: it returns the model's raw reply and
leaves payload extraction to ``response_parser``. Gemini is the default
provider; OpenAI and Anthropic can be selected with ANALYZER_PROVIDER.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from typing import Any

import anthropic
import requests
from openai import OpenAI, OpenAIError

from errors import AnalyzerCallError, ResponseParseError
from models import ItemRecord
from prompt import build_prompt

ANALYZER_PROVIDER = os.getenv("ANALYZER_PROVIDER", "gemini")
ANALYZER_TIMEOUT_SECONDS = int(os.getenv("ANALYZER_TIMEOUT_SECONDS", "600"))
ANALYZER_TEMPERATURE = float(os.getenv("ANALYZER_TEMPERATURE", "0.1"))

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "65536"))

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-5.2")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-opus-4-6")
CLAUDE_MAX_TOKENS = int(os.getenv("CLAUDE_MAX_TOKENS", "16000"))

LOGGER = logging.getLogger(__name__)


def analyze_items(items: Sequence[ItemRecord]) -> str:
    """Send one batch of items to the configured model and return its reply text."""
    prompt = build_prompt(items)
    provider = ANALYZER_PROVIDER.lower()
    LOGGER.info("Analyzing %s items with provider=%s", len(items), provider)

    if provider == "gemini":
        return _call_gemini(prompt)
    if provider == "openai":
        return _call_openai(prompt)
    if provider == "anthropic":
        return _call_anthropic(prompt)
    raise AnalyzerCallError(f"Unknown ANALYZER_PROVIDER: {ANALYZER_PROVIDER}")


def _call_gemini(prompt: str) -> str:
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise AnalyzerCallError("GEMINI_API_KEY environment variable is required")

    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": ANALYZER_TEMPERATURE,
            "topK": 1,
            "topP": 1,
            "responseMimeType": "application/json",
            "maxOutputTokens": GEMINI_MAX_OUTPUT_TOKENS,
        },
    }

    try:
        response = requests.post(
            GEMINI_API_URL.format(model=GEMINI_MODEL),
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=ANALYZER_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        body = response.json()
    except requests.RequestException as exc:
        raise AnalyzerCallError(f"Gemini request failed: {_gemini_error(exc)}") from exc
    except ValueError as exc:
        raise AnalyzerCallError(f"Gemini returned a non-JSON body: {exc}") from exc

    try:
        return body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ResponseParseError(
            "No duplicate data found in AI response", raw_text=json.dumps(body)
        ) from exc


def _gemini_error(exc: requests.RequestException) -> str:
    response = exc.response
    if response is None:
        return str(exc)
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = str(exc)
    return f"({response.status_code}) {message}"


def _call_openai(prompt: str) -> str:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise AnalyzerCallError("OPENAI_API_KEY environment variable is required")

    client = OpenAI(api_key=api_key, timeout=ANALYZER_TIMEOUT_SECONDS, max_retries=0)
    try:
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            temperature=ANALYZER_TEMPERATURE,
            response_format={"type": "json_object"},
            messages=[{"role": "user", "content": prompt}],
        )
    except OpenAIError as exc:
        raise AnalyzerCallError(f"OpenAI request failed: {exc}") from exc

    content = response.choices[0].message.content
    if not content:
        raise ResponseParseError("OpenAI returned an empty response")
    return content


def _call_anthropic(prompt: str) -> str:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise AnalyzerCallError("ANTHROPIC_API_KEY environment variable is required")

    client = anthropic.Anthropic(api_key=api_key, timeout=ANALYZER_TIMEOUT_SECONDS, max_retries=0)
    kwargs: dict[str, Any] = {
        "model": CLAUDE_MODEL,
        "max_tokens": CLAUDE_MAX_TOKENS,
        "messages": [{"role": "user", "content": prompt}],
    }

    LOGGER.debug("Calling Claude model=%s max_tokens=%s", CLAUDE_MODEL, CLAUDE_MAX_TOKENS)
    try:
        response = client.messages.create(**kwargs)
    except anthropic.AnthropicError as exc:
        raise AnalyzerCallError(f"Anthropic request failed: {exc}") from exc

    text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
    if not text:
        raise ResponseParseError("Claude returned an empty response")
    return text
