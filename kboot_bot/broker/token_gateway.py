# kboot_bot/broker/token_gateway.py
# Exchanges the kabuStation API password for a session token (POST {api_url}/token).
# Every failure mode collapses into AuthError; the gateway never touches the TokenStore.

from typing import Optional

import requests

from kboot_bot.broker.kabus_request import post_json
from kboot_bot.config.error_handler_bot import AuthError
from kboot_bot.config.env_bot import DEFAULT_API_URL
from kboot_bot.support.utils_log import log_event


class TokenGateway:
    def __init__(self, api_url: str = DEFAULT_API_URL, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout
        self.session = session

    @property
    def token_url(self) -> str:
        return f"{self.api_url}/token"

    def authenticate(self, password: str) -> str:
        """
        Returns a non-empty token or raises AuthError.
        An empty/whitespace password is rejected without any network call.
        """
        if not (password or "").strip():
            raise AuthError("API password is not configured (SYSTEM.APIPW)")

        try:
            status, body = post_json(
                self.token_url,
                {"APIPassword": password},
                timeout=self.timeout,
                session=self.session,
            )
        except requests.RequestException as e:
            raise AuthError("kabuStation API is unreachable", detail=str(e)) from e

        if not 200 <= status < 300:
            detail = None
            if isinstance(body, dict):
                detail = f"Code={body.get('Code')} Message={body.get('Message')}"
            raise AuthError(f"Token request rejected (http={status})", detail=detail, status_code=status)

        token = body.get("Token") if isinstance(body, dict) else None
        if not isinstance(token, str) or token == "":
            raise AuthError("Token response did not contain a token", status_code=status)

        log_event("token_gateway", "Token issued", extra={"http": status})
        return token
