"""HTTP client for the relation sync API."""
from __future__ import annotations

from typing import Any

import httpx


class ApiClient:
    """HTTP client for the relation sync API."""

    def __init__(self, api_url: str, token: str | None = None, transport: httpx.BaseTransport | None = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.client = httpx.Client(timeout=120.0, transport=transport)

    def _headers(self) -> dict:
        """Build request headers."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str) -> Any:
        """Make GET request."""
        res = self.client.get(f"{self.api_url}{path}", headers=self._headers())
        res.raise_for_status()
        return res.json()

    def post(self, path: str, data: dict | None = None) -> Any:
        """Make POST request."""
        res = self.client.post(f"{self.api_url}{path}", json=data or {}, headers=self._headers())
        res.raise_for_status()
        return res.json()

    def relations(self) -> list[str]:
        return self.get("/api/sync/relations")

    def validate(self, relation: str) -> dict:
        """Returns {"sound": bool, "orphaned": {...}, "issues": [...], ...}"""
        return self.get(f"/api/sync/{relation}/validate")

    def repair(self, relation: str) -> dict:
        """Returns a sync report; "complete" is False when some writes still fail."""
        return self.post(f"/api/sync/{relation}/repair")

    def stats(self, relation: str) -> dict:
        return self.get(f"/api/sync/{relation}/stats")

    def close(self):
        """Close client."""
        self.client.close()
