# kboot_bot/broker/kabus_request.py
# Single-attempt HTTP helper for the local kabuStation API.
# Adds X-Request-ID, logs request_id / status / response hash, never logs bodies (they carry tokens).

import hashlib
import uuid
from typing import Any, Dict, Optional, Tuple

import requests

from kboot_bot.support.utils_log import log_event


def _response_hash(resp: requests.Response) -> str:
    try:
        content = resp.content if resp.content is not None else b""
        return hashlib.sha256(content).hexdigest()[:16]
    except Exception:
        return "unhashable"


def _json_or_text(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def post_json(
    url: str,
    json_data: Dict[str, Any],
    timeout: float = 10,
    session: Optional[requests.Session] = None,
) -> Tuple[int, Any]:
    """
    POST json_data to url once. Returns (status_code, parsed JSON or text).
    Transport errors propagate as requests.RequestException.
    """
    request_id = str(uuid.uuid4())
    hdrs = {"Content-Type": "application/json", "X-Request-ID": request_id}

    sender = session if session is not None else requests
    try:
        resp = sender.post(url, json=json_data, headers=hdrs, timeout=timeout)
    except requests.RequestException as e:
        log_event(
            "kabus_request",
            f"network_error request_id={request_id} url={url} err={type(e).__name__}",
            level="warning",
        )
        raise

    log_event(
        "kabus_request",
        f"response status={resp.status_code} request_id={request_id} url={url} hash={_response_hash(resp)}",
        level="debug",
    )
    return resp.status_code, _json_or_text(resp)
