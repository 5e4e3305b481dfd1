"""
Gemini AI client.

Single entry point for text generation: one prompt in, text out. Callers
decide what to do on failure; this module only raises AIError.
"""
from typing import Optional

import google.generativeai as genai

from mailassist.config import get_settings
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import AIError

logger = get_logger(__name__)

# Finish reasons that leave a candidate without text
FINISH_MAX_TOKENS = 2
FINISH_SAFETY = 3
FINISH_RECITATION = 4

_configured_key: Optional[str] = None


def _ensure_configured(api_key: str) -> None:
    global _configured_key
    if _configured_key != api_key:
        genai.configure(api_key=api_key)
        _configured_key = api_key


async def complete(
    prompt: str,
    max_tokens: int = 1024,
    temperature: float = 0.7,
) -> str:
    """
    Generate a completion using the configured Gemini model.

    Exactly one request is made; there is no retry or model fallback.

    Args:
        prompt: The user prompt
        max_tokens: Maximum tokens in response
        temperature: Creativity parameter (0-1)

    Returns:
        The generated text, stripped

    Raises:
        AIError: Missing key, API failure, blocked or empty output
    """
    settings = get_settings()
    if not settings.has_model_credential:
        raise AIError("Gemini API key is not configured.")

    _ensure_configured(settings.gemini_api_key)

    try:
        model = genai.GenerativeModel(
            model_name=settings.gemini_model,
            generation_config=genai.types.GenerationConfig(
                max_output_tokens=max_tokens,
                temperature=temperature,
            ),
        )
        response = await model.generate_content_async(prompt)
    except Exception as e:
        logger.error(f"Gemini API error: {e}")
        raise AIError(f"AI service unavailable: {e}")

    if not response.candidates:
        raise AIError("No candidates returned from Gemini")

    candidate = response.candidates[0]
    if not candidate.content.parts:
        finish_reason = candidate.finish_reason
        if finish_reason == FINISH_MAX_TOKENS:
            raise AIError("Response truncated (max tokens reached) with no content")
        if finish_reason in (FINISH_SAFETY, FINISH_RECITATION):
            raise AIError(f"Content blocked (finish reason {finish_reason})")
        raise AIError(f"Empty response (finish reason {finish_reason})")

    try:
        content = response.text.strip()
    except ValueError:
        content = "".join(getattr(part, "text", "") for part in candidate.content.parts).strip()

    if not content:
        raise AIError("Gemini returned empty text")

    logger.debug(f"Gemini response: {content[:100]}...")
    return content
