"""Zoho OAuth token exchange and refresh."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from errors import AuthExchangeError, CredentialsNotFoundError, TokenRefreshError
from models import CredentialRecord
from token_store import TokenStore, is_token_valid, now_ms

ZOHO_TOKEN_URL = os.getenv("ZOHO_TOKEN_URL", "https://accounts.zoho.com/oauth/v2/token")
REQUEST_TIMEOUT_SECONDS = int(os.getenv("ZOHO_TIMEOUT_SECONDS", "30"))
_DEFAULT_EXPIRES_IN = 3600

LOGGER = logging.getLogger(__name__)


def exchange_grant_token(
    client_id: str,
    client_secret: str,
    grant_token: str,
    store: TokenStore,
) -> CredentialRecord:
    """Trade a one-time grant token for access and refresh tokens and persist them."""
    LOGGER.info("Requesting initial tokens with grant token")
    body = _post_token(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "authorization_code",
            "code": grant_token,
        }
    )

    access_token = body.get("access_token")
    refresh_token = body.get("refresh_token")
    if not access_token or not refresh_token:
        detail = _error_detail(body) or "Missing access_token or refresh_token in response"
        raise AuthExchangeError(f"Initial token request failed: {detail}")

    record = CredentialRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=_expiry_from(body),
        client_id=client_id,
        client_secret=client_secret,
    )
    store.save(record)
    LOGGER.info("Initial tokens obtained and saved")
    return record


def refresh_access_token(record: CredentialRecord, store: TokenStore) -> CredentialRecord:
    """Mint a new access token from the stored refresh token.

    The refresh token is kept even if the provider sends a new one, and the
    store is only written on success.
    """
    LOGGER.info("Refreshing access token")
    body = _post_token(
        {
            "client_id": record.client_id,
            "client_secret": record.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": record.refresh_token,
        }
    )

    access_token = body.get("access_token")
    if not access_token:
        detail = _error_detail(body) or "No access token in refresh response"
        raise TokenRefreshError(f"Token refresh failed: {detail}")

    updated = record.with_access_token(access_token, _expiry_from(body))
    store.save(updated)
    LOGGER.info("Access token refreshed and saved")
    return updated


def get_access_token(store: TokenStore, now: int | None = None) -> str:
    """Return a usable access token, refreshing the stored one when it is near expiry."""
    record = store.load()
    if record is None:
        raise CredentialsNotFoundError(
            "No authentication tokens found. Please run the setup process first."
        )

    if is_token_valid(record, now):
        LOGGER.info("Using existing valid access token")
        return record.access_token

    LOGGER.info("Access token expired or about to expire, refreshing")
    return refresh_access_token(record, store).access_token


def setup_auth(client_id: str, client_secret: str, grant_token: str, store: TokenStore) -> CredentialRecord:
    """First-time setup: create the credential file from a grant token."""
    LOGGER.info("Setting up Zoho authentication")
    record = exchange_grant_token(client_id, client_secret, grant_token, store)
    LOGGER.info("Zoho authentication setup completed")
    return record


def _post_token(payload: dict[str, str]) -> dict[str, Any]:
    """POST a form-encoded token request.

    Zoho reports OAuth errors in a JSON body, usually with a 200 status. A
    failure without such a body is raised as the underlying requests error.
    """
    response = requests.post(
        ZOHO_TOKEN_URL,
        data=payload,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    if not response.ok:
        if _error_detail(body):
            LOGGER.warning("Token endpoint returned %s: %s", response.status_code, body)
            return body
        response.raise_for_status()

    return body


def _error_detail(body: dict[str, Any]) -> str | None:
    for key in ("error_description", "error", "message"):
        value = body.get(key)
        if value:
            return str(value)
    return None


def _expiry_from(body: dict[str, Any]) -> int:
    try:
        expires_in = int(body.get("expires_in", _DEFAULT_EXPIRES_IN))
    except (TypeError, ValueError):
        expires_in = _DEFAULT_EXPIRES_IN
    return now_ms() + expires_in * 1000
