# gemini.py

import logging

from google import genai
from google.genai import errors as genai_errors

import config
from throttle.errors import RemoteCallError
from throttle.service_types import ErrorKind

logger = logging.getLogger(__name__)

_client = None


def _get_client():
    """Lazy-initialize Gemini client. Returns None if API key is not set."""
    global _client
    if _client is not None:
        return _client
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set. AI generation will be skipped.")
        return None
    _client = genai.Client(api_key=config.GEMINI_API_KEY)
    return _client


def classify_gemini_error(exc):
    """Map a google-genai exception onto the throttle's error kinds."""
    if isinstance(exc, RemoteCallError):
        return exc.kind

    if not isinstance(exc, genai_errors.APIError):
        return ErrorKind.OTHER

    if exc.code == 429:
        return ErrorKind.RATE_LIMITED

    # e.g. "The input token count exceeds the maximum number of tokens allowed"
    message = (exc.message or str(exc)).lower()
    if exc.code == 400 and "exceeds the maximum" in message:
        return ErrorKind.STRUCTURAL_INVALID

    return ErrorKind.OTHER


def _generate(client, model, prompt):
    try:
        return client.models.generate_content(model=model, contents=prompt)
    except genai_errors.APIError as e:
        kind = classify_gemini_error(e)
        if kind is ErrorKind.OTHER:
            raise
        raise RemoteCallError(kind, str(e), cause=e) from e


def generate_text(throttle, prompt, model=None):
    """
    Generate text through the throttle.
    Returns "" if the monthly quota is used up, no API key is configured,
    or the prompt is too large for the model.
    """
    model = model or config.GEMINI_MODEL

    if throttle.disabled():
        logger.warning("Monthly %s quota reached (%s). Skipping call.",
                       throttle.service_type, throttle.monthly_summary())
        return ""

    client = _get_client()
    if client is None:
        return ""

    response = throttle.invoke(f"{model} generate", lambda: _generate(client, model, prompt))
    if response is None or not response.text:
        return ""
    return response.text.strip()
