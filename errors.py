"""Error taxonomy for the duplicate detection pipeline."""

from __future__ import annotations


class DetectorError(RuntimeError):
    """Base class for every failure the pipeline reports to a caller."""


class AuthExchangeError(DetectorError):
    """The one-time grant token could not be exchanged for credentials."""


class TokenRefreshError(DetectorError):
    """The stored refresh token could not mint a new access token."""


class CredentialsNotFoundError(DetectorError):
    """No credential file exists yet; setup has not been run."""


class UpstreamFetchError(DetectorError):
    """Item pagination against the accounting API failed."""

    def __init__(self, message: str, status: int | None = None, page: int | None = None) -> None:
        super().__init__(f"Zoho API error (page {page}, status {status}): {message}")
        self.status = status
        self.page = page


class AnalyzerCallError(DetectorError):
    """The remote analyzer call failed before returning a response."""


class ResponseParseError(DetectorError):
    """The analyzer's text did not contain usable duplicate data."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text
