"""Handbook Fetcher — retrieves the current snapshot from the API server."""

import logging

import requests
from pydantic import ValidationError

from handbook_kernel.models.directory import Snapshot
from handbook_kernel.models.errors import FetchError, FetchTimeoutError

logger = logging.getLogger(__name__)


def parse_envelope(payload: object) -> Snapshot:
    """Snapshot out of a decoded response envelope. Raises FetchError otherwise."""
    if not isinstance(payload, dict) or payload.get("status") != "success":
        message = payload.get("message") if isinstance(payload, dict) else None
        raise FetchError(message or "Server reported an error")

    try:
        return Snapshot.model_validate(payload.get("data"))
    except ValidationError as e:
        raise FetchError(f"Malformed handbook payload: {e}") from e


class HandbookFetcher:
    """GET the handbook envelope with a bounded wait."""

    def __init__(self, api_url: str, timeout_seconds: float = 10.0):
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    def fetch(self) -> Snapshot:
        """
        Return the server's snapshot.

        Raises FetchError for anything short of a valid success envelope.
        """
        try:
            resp = requests.get(
                self.api_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            raise FetchTimeoutError(
                f"No response from {self.api_url} within {self.timeout_seconds}s"
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Request to {self.api_url} failed: {e}") from e

        if resp.status_code // 100 != 2:
            raise FetchError(f"HTTP {resp.status_code}: {resp.reason}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON response: {e}") from e

        snapshot = parse_envelope(payload)
        logger.info(
            "Fetched handbook snapshot (key=%s, office=%d, cabinets=%d)",
            snapshot.timestamp,
            len(snapshot.office),
            len(snapshot.cabinets),
        )
        return snapshot
