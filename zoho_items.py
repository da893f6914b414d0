"""Zoho Books item catalog ingestion."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from errors import UpstreamFetchError
from models import ItemRecord

ZOHO_API_BASE = os.getenv("ZOHO_API_BASE", "https://www.zohoapis.com/books/v3")
REQUEST_TIMEOUT_SECONDS = int(os.getenv("ZOHO_TIMEOUT_SECONDS", "30"))
# Zoho's documented maximum page size.
PER_PAGE = 1000

LOGGER = logging.getLogger(__name__)


def fetch_all_items(access_token: str, organization_id: str, per_page: int = PER_PAGE) -> list[ItemRecord]:
    """Fetch every item in the organization, following page_context.

    Pagination stops when Zoho reports no further pages or a page comes back
    empty. Any failed request aborts the whole fetch.
    """
    url = f"{ZOHO_API_BASE}/items"
    headers = {"Authorization": f"Zoho-oauthtoken {access_token}"}

    items: list[ItemRecord] = []
    page = 1

    while True:
        params = {"organization_id": organization_id, "per_page": per_page, "page": page}
        LOGGER.info("Fetching items page %s", page)
        payload = _get_page(url, headers, params, page)

        page_items = payload.get("items") or []
        if not isinstance(page_items, list):
            raise UpstreamFetchError("Unexpected items payload shape: expected a list", page=page)
        if not page_items:
            break

        items.extend(ItemRecord.from_upstream(record) for record in page_items)
        LOGGER.info("Fetched %s items on page %s, total so far %s", len(page_items), page, len(items))

        page_context = payload.get("page_context")
        if not isinstance(page_context, dict) or not page_context.get("has_more_page"):
            break
        page += 1

    LOGGER.info("Finished fetching items: total=%s pages=%s", len(items), page)
    return items


def _get_page(url: str, headers: dict[str, str], params: dict[str, Any], page: int) -> dict[str, Any]:
    try:
        response = requests.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise UpstreamFetchError(str(exc), page=page) from exc

    if not response.ok:
        raise UpstreamFetchError(_error_message(response), status=response.status_code, page=page)

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamFetchError(f"Invalid JSON body: {exc}", status=response.status_code, page=page) from exc

    if not isinstance(payload, dict):
        raise UpstreamFetchError("Unexpected payload shape: expected an object", status=response.status_code, page=page)
    return payload


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "request failed"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or "request failed"
