"""
TVDb v4 API client for episode metadata.

The DVD pipeline only needs the episode list of one season, in order, to name
the ripped files. Every public method logs failures and returns an empty
sentinel ([] or None) instead of raising, so a lookup problem surfaces as a
failed pipeline phase rather than a traceback.
"""
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from ..config.common import HTTP_TIMEOUT_SECONDS, TVDB_BASE_URL
from ..domain.exceptions import MetadataLookupError
from ..domain.models import Episode

# Safety net against a "next" link that never ends.
MAX_EPISODE_PAGES = 50


class TvdbClient:
    """Client for the TVDb v4 REST API. Logs in lazily on the first request."""

    def __init__(
        self,
        api_key: str,
        pin: Optional[str] = None,
        base_url: str = TVDB_BASE_URL,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise MetadataLookupError("A TVDb API key is required. Set tvdb.api_key or TVDB_API_KEY.")
        self.api_key = api_key
        self.pin = pin
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self.token: Optional[str] = None

    def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Sends one request and returns the decoded JSON body, raising MetadataLookupError on failure."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(method, url, timeout=HTTP_TIMEOUT_SECONDS, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise MetadataLookupError(f"TVDb request failed ({method} {endpoint}): {e}") from e
        except ValueError as e:
            raise MetadataLookupError(f"Invalid JSON from TVDb ({endpoint}): {e}") from e
        if not isinstance(data, dict):
            raise MetadataLookupError(f"Unexpected TVDb response for {endpoint}")
        return data

    def login(self) -> bool:
        """Exchanges the API key (and PIN) for a bearer token."""
        payload = {"apikey": self.api_key}
        if self.pin:
            payload["pin"] = self.pin
        try:
            data = self._make_request("POST", "login", json=payload)
        except MetadataLookupError as e:
            logger.error(f"TVDb login failed: {e}")
            return False
        token = (data.get("data") or {}).get("token")
        if not token:
            logger.error("TVDb login response did not contain a token.")
            return False
        self.token = token
        self.session.headers["Authorization"] = f"Bearer {token}"
        logger.debug("Logged in to TVDb.")
        return True

    def _ensure_login(self) -> bool:
        return self.token is not None or self.login()

    def search_series(self, name: str) -> List[Dict[str, Any]]:
        """Series search results (`tvdb_id`, `name`, `year`, ...), best match first."""
        if not self._ensure_login():
            return []
        try:
            data = self._make_request("GET", "search", params={"query": name, "type": "series"})
        except MetadataLookupError as e:
            logger.error(f"TVDb search for '{name}' failed: {e}")
            return []
        results = data.get("data") or []
        logger.info(f"TVDb returned {len(results)} series for '{name}'")
        return results

    def get_season_episodes(self, series_id: int, season: int) -> List[Episode]:
        """
        Returns the episodes of one season in aired order ("default" season type).

        Follows the paginated `links.next` until it runs out. Episodes without an
        episode number are dropped.
        """
        if not self._ensure_login():
            return []

        episodes: List[Episode] = []
        page = 0
        while page < MAX_EPISODE_PAGES:
            try:
                data = self._make_request(
                    "GET", f"series/{series_id}/episodes/default", params={"season": season, "page": page}
                )
            except MetadataLookupError as e:
                logger.error(f"Episode lookup for series {series_id} season {season} failed: {e}")
                return []

            for item in (data.get("data") or {}).get("episodes") or []:
                if item.get("seasonNumber") != season or item.get("number") is None:
                    continue
                episodes.append(Episode(
                    id=int(item.get("id", 0)),
                    season_number=season,
                    episode_number=int(item["number"]),
                    title=str(item.get("name") or ""),
                ))

            if not (data.get("links") or {}).get("next"):
                break
            page += 1

        episodes.sort(key=lambda e: e.episode_number)
        logger.info(f"TVDb returned {len(episodes)} episodes for series {series_id} season {season}")
        return episodes
