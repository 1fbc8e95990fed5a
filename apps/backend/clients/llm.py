"""OpenAI-compatible chat completions client."""
from __future__ import annotations

import logging
import time

import httpx

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 2
DEFAULT_BACKOFF = 0.8


def _mask_key(key: str) -> str:
    k = (key or "").strip()
    if len(k) <= 14:
        return "***"
    return f"{k[:7]}...{k[-7:]}"


def _normalize_err(err: str) -> str:
    if not err:
        return "unknown_error"
    low = err.lower()
    if "connection reset by peer" in low or "errno 104" in low:
        return "connection_reset"
    if "certificate verify failed" in low:
        return "ssl_verify_failed"
    if "timeout" in low:
        return "timeout"
    return err[:200]


def _post_json(
    url: str,
    *,
    headers: dict[str, str],
    json_body: dict,
    timeout: int = 60,
    retries: int = DEFAULT_RETRIES,
) -> tuple[httpx.Response | None, dict, str | None]:
    last_err = None
    for attempt in range(retries + 1):
        try:
            r = httpx.post(url, headers=headers, json=json_body, timeout=timeout)
            payload = r.json() if r.content else {}
            return r, payload, None
        except (httpx.RequestError, ValueError) as e:
            last_err = _normalize_err(str(e))
            if attempt < retries:
                time.sleep(DEFAULT_BACKOFF * (attempt + 1))
                continue
    return None, {}, last_err


def chat_complete(
    messages: list[dict],
    *,
    model: str | None = None,
    temperature: float = 0.3,
    max_tokens: int | None = None,
) -> tuple[str | None, str | None]:
    """Returns (content, error). Error is a short code, never the API key."""
    s = get_settings()
    if not s.llm_api_key:
        return None, "missing_api_key"
    body: dict = {
        "model": model or s.llm_model,
        "messages": messages,
        "temperature": temperature,
    }
    if max_tokens:
        body["max_tokens"] = max_tokens
    url = f"{s.llm_api_base.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {s.llm_api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    r, payload, err = _post_json(url, headers=headers, json_body=body)
    if err:
        logger.warning("llm_request_failed err=%s key=%s", err, _mask_key(s.llm_api_key))
        return None, err
    if r is None or r.status_code >= 400:
        status = r.status_code if r is not None else 0
        detail = ""
        if isinstance(payload, dict):
            detail = str((payload.get("error") or {}).get("message") or "")[:200] if isinstance(payload.get("error"), dict) else str(payload.get("error") or "")[:200]
        logger.warning("llm_http_error status=%s detail=%s", status, detail)
        return None, f"http_{status}"
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None, "invalid_response"
    return content, None
