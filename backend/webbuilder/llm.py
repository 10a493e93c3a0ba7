"""
Text generation for the content rewriter.

Claude is the primary provider; when no Anthropic key is configured the
same prompt goes to Gemini. With neither key set every call raises
LLMUnavailableError so the caller can keep its original text.
"""

import asyncio
import os

import anthropic

from webbuilder.config import get_settings


LLM_TIMEOUT = 60


class LLMUnavailableError(Exception):
    pass


_client = None


def _get_client():
    global _client
    if _client is None:
        api_key = os.getenv("ANTHROPIC_API_KEY") or get_settings().anthropic_api_key
        _client = anthropic.AsyncAnthropic(api_key=api_key)
    return _client


def _get_gemini_key() -> str:
    return os.getenv("GEMINI_API_KEY") or get_settings().gemini_api_key


def _has_anthropic_key() -> bool:
    return bool(os.getenv("ANTHROPIC_API_KEY") or get_settings().anthropic_api_key)


async def _generate_with_claude(prompt: str, max_tokens: int, temperature: float) -> str:
    client = _get_client()
    response = await asyncio.wait_for(
        client.messages.create(
            model=get_settings().default_model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        ),
        timeout=LLM_TIMEOUT,
    )
    return "".join(block.text for block in response.content if block.type == "text")


async def _generate_with_gemini(prompt: str, max_tokens: int, temperature: float) -> str:
    from google import genai
    from google.genai import types

    client = genai.Client(api_key=_get_gemini_key())
    response = await asyncio.wait_for(
        client.aio.models.generate_content(
            model=get_settings().gemini_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                max_output_tokens=max_tokens,
                temperature=temperature,
            ),
        ),
        timeout=LLM_TIMEOUT,
    )
    return response.text or ""


async def generate_text(prompt: str, max_tokens: int = 200, temperature: float = 0.8) -> str:
    """Single prompt, single completion. Returns the stripped text."""
    if _has_anthropic_key():
        text = await _generate_with_claude(prompt, max_tokens, temperature)
    elif _get_gemini_key():
        text = await _generate_with_gemini(prompt, max_tokens, temperature)
    else:
        raise LLMUnavailableError("No ANTHROPIC_API_KEY or GEMINI_API_KEY configured")

    text = text.strip()
    if not text:
        raise ValueError("Empty completion")
    return text
