import logging
from typing import Any, Dict, List, Optional

import requests

from .config import Settings

logger = logging.getLogger(__name__)

NAME_ATTRIBUTES = ["CompanyName", "name", "company_name"]


class SearchError(Exception):
    pass


class SearchClient:
    """Client for the company full-text index (Meilisearch HTTP API)."""

    def __init__(self, base_url: str, index: str, api_key: str = "", timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchClient":
        return cls(settings.search_url, settings.search_index, settings.search_api_key, settings.search_timeout)

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/indexes/{self.index}/search"

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            r = self.session.post(self.search_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Search request failed: %s", e)
            raise SearchError(f"network error: {e}") from e
        if not r.ok:
            logger.error("Search API error: %s - %s", r.status_code, r.text[:500])
            raise SearchError(f"search API error: {r.status_code}")
        return r.json()

    def search(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        if not query or not query.strip():
            return []
        data = self._post({
            "q": query.strip(),
            "limit": limit,
            "attributesToRetrieve": ["*"],
            "attributesToHighlight": NAME_ATTRIBUTES,
        })
        return data.get("hits") or []

    def get_company(self, cin: str) -> Optional[Dict[str, Any]]:
        if not cin or not cin.strip():
            return None
        data = self._post({"q": cin.strip(), "limit": 1, "attributesToRetrieve": ["*"]})
        hits = data.get("hits") or []
        return hits[0] if hits else None


def company_name(hit: Dict[str, Any]) -> str:
    for key in NAME_ATTRIBUTES:
        if hit.get(key):
            return hit[key]
    return ""


def company_website(hit: Dict[str, Any]) -> Optional[str]:
    website = (hit.get("Website") or "").strip()
    if not website:
        return None
    if not website.startswith(("http://", "https://")):
        return f"https://{website}"
    return website
