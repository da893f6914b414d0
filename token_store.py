"""File-backed storage for Zoho OAuth credentials."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from json import JSONDecodeError
from pathlib import Path

from models import CredentialRecord

ZOHO_TOKENS_FILE = os.getenv("ZOHO_TOKENS_FILE", "zoho_tokens.json")

# Tokens this close to expiry are treated as already expired.
EXPIRY_BUFFER_MS = 5 * 60 * 1000

LOGGER = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def is_token_valid(record: CredentialRecord, now: int | None = None) -> bool:
    """Return True if the access token outlives the five-minute safety buffer."""
    current = now_ms() if now is None else now
    return record.expires_at > current + EXPIRY_BUFFER_MS


class TokenStore:
    """Reads and atomically overwrites a single JSON credential file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or ZOHO_TOKENS_FILE)

    def load(self) -> CredentialRecord | None:
        if not self.path.exists():
            return None

        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
            return CredentialRecord.from_dict(data)
        except (OSError, JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Could not load tokens from %s: %s", self.path, exc)
            return None

    def save(self, record: CredentialRecord) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record.to_dict(), fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        LOGGER.info("Tokens saved to %s", self.path)
