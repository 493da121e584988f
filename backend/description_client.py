"""
Product description writer — wraps the local Ollama HTTP API.
Used by the admin console to draft catalogue copy.
"""

import logging
from typing import Optional

import httpx

from config import DESCRIPTION_MODEL, OLLAMA_BASE

logger = logging.getLogger(__name__)

EMPTY_FALLBACK = "A high-quality accessory designed for your modern tech lifestyle."
ERROR_FALLBACK = "Premium electronic accessory built for performance and durability."

SYSTEM_PROMPT = (
    "You write short, upbeat product copy for an online electronics "
    "accessories store. Answer with the description only: no title, "
    "no quotes, no markdown."
)

_cached_model = None


async def _get_model(model: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """Return the requested model, or auto-detect from available models."""
    global _cached_model
    if _cached_model:
        return _cached_model
    models = await list_models(transport)
    if model in models:
        _cached_model = model
        return model
    # Try common prefixes
    for m in models:
        if m.startswith(model.split(":")[0]):
            _cached_model = m
            return m
    if models:
        _cached_model = models[0]
        return models[0]
    return model


async def generate_description(name: str, category: str, model: str = DESCRIPTION_MODEL,
                               transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """A ~20 word marketing blurb, or a static fallback if the model is unavailable."""
    prompt = (
        f'Generate a compelling 20-word product description for a premium electronic '
        f'accessory named "{name}" in the "{category}" category. '
        f'Focus on reliability and modern design.'
    )
    actual_model = await _get_model(model, transport)
    payload = {
        "model": actual_model,
        "prompt": prompt,
        "system": SYSTEM_PROMPT,
        "stream": False,
        "options": {"temperature": 0.7, "num_predict": 80},
    }
    async with httpx.AsyncClient(timeout=60.0, transport=transport) as client:
        try:
            resp = await client.post(f"{OLLAMA_BASE}/api/generate", json=payload)
            resp.raise_for_status()
            text = (resp.json().get("response") or "").strip()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Description generation failed for %r: %s", name, e)
            return ERROR_FALLBACK
    return text or EMPTY_FALLBACK


async def list_models(transport: Optional[httpx.AsyncBaseTransport] = None) -> list[str]:
    """Return a list of locally‑available model names."""
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        try:
            resp = await client.get(f"{OLLAMA_BASE}/api/tags")
            resp.raise_for_status()
            models = resp.json().get("models", [])
            return [m["name"] for m in models]
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            return []


def reset_model_cache() -> None:
    global _cached_model
    _cached_model = None
