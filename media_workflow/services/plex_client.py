"""
Plex Media Server REST API client.

Every request carries the `X-Plex-Token` header and asks for JSON. Responses
are wrapped in a `MediaContainer` object; the client unwraps it into small
records. Failures are logged and reported as None, [] or False.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from .. import __version__
from ..config.common import HTTP_TIMEOUT_SECONDS, PLEX_PRODUCT_NAME, PLEX_TV_SIGN_IN_URL


@dataclass(frozen=True)
class PlexServerInfo:
    name: str
    version: str
    machine_identifier: str
    platform: str = ""


@dataclass(frozen=True)
class PlexLibrary:
    """A library section, e.g. key "2", type "show"."""

    key: str
    title: str
    type: str
    locations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlexItem:
    """A metadata item (movie, show, season, episode)."""

    rating_key: str
    title: str
    type: str
    year: Optional[int] = None
    parent_title: Optional[str] = None
    index: Optional[int] = None
    file_paths: List[str] = field(default_factory=list)

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> "PlexItem":
        file_paths = [
            part["file"]
            for media in metadata.get("Media") or []
            for part in media.get("Part") or []
            if part.get("file")
        ]
        return cls(
            rating_key=str(metadata.get("ratingKey", "")),
            title=str(metadata.get("title", "")),
            type=str(metadata.get("type", "")),
            year=metadata.get("year"),
            parent_title=metadata.get("parentTitle") or metadata.get("grandparentTitle"),
            index=metadata.get("index"),
            file_paths=file_paths,
        )


def client_headers(client_identifier: str) -> Dict[str, str]:
    return {
        "X-Plex-Client-Identifier": client_identifier,
        "X-Plex-Product": PLEX_PRODUCT_NAME,
        "X-Plex-Version": __version__,
        "Accept": "application/json",
    }


def sign_in(
    username: str,
    password: str,
    client_identifier: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> Optional[str]:
    """
    Signs in to plex.tv with HTTP Basic auth and returns the account's auth token.

    Returns:
        The token, or None if the sign-in failed.
    """
    http = session or requests.Session()
    try:
        response = http.post(
            PLEX_TV_SIGN_IN_URL,
            auth=(username, password),
            headers=client_headers(client_identifier or str(uuid.uuid4())),
            timeout=HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Plex sign-in failed: {e}")
        return None
    except ValueError as e:
        logger.error(f"Invalid JSON from plex.tv: {e}")
        return None

    token = (data.get("user") or {}).get("authToken") or (data.get("user") or {}).get("authentication_token")
    if not token:
        logger.error("plex.tv sign-in response did not contain an auth token.")
        return None
    logger.info(f"Signed in to plex.tv as {username}")
    return token


class PlexClient:
    """Client for one Plex Media Server, e.g. `PlexClient("http://localhost:32400", token)`."""

    def __init__(self, base_url: str, token: str, session: Optional[requests.Session] = None):
        if not base_url or not token:
            raise ValueError("Plex base URL and token are required. Set plex.url/plex.token or PLEX_URL/PLEX_TOKEN.")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"X-Plex-Token": token, "Accept": "application/json"})

    def _get_container(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """GETs an endpoint and returns its `MediaContainer`, or None after logging the failure."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Plex request failed (GET {endpoint}): {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid JSON from Plex ({endpoint}): {e}")
            return None
        container = data.get("MediaContainer") if isinstance(data, dict) else None
        if container is None:
            logger.error(f"Plex response for {endpoint} has no MediaContainer.")
        return container

    def get_server_info(self) -> Optional[PlexServerInfo]:
        container = self._get_container("/")
        if container is None:
            return None
        return PlexServerInfo(
            name=str(container.get("friendlyName", "")),
            version=str(container.get("version", "")),
            machine_identifier=str(container.get("machineIdentifier", "")),
            platform=str(container.get("platform", "")),
        )

    def get_libraries(self) -> List[PlexLibrary]:
        container = self._get_container("/library/sections")
        if container is None:
            return []
        return [
            PlexLibrary(
                key=str(d.get("key", "")),
                title=str(d.get("title", "")),
                type=str(d.get("type", "")),
                locations=[loc.get("path", "") for loc in d.get("Location") or []],
            )
            for d in container.get("Directory") or []
        ]

    def get_library_items(self, section_id: str) -> List[PlexItem]:
        container = self._get_container(f"/library/sections/{section_id}/all")
        if container is None:
            return []
        return [PlexItem.from_metadata(m) for m in container.get("Metadata") or []]

    def get_item(self, rating_key: str) -> Optional[PlexItem]:
        container = self._get_container(f"/library/metadata/{rating_key}")
        if container is None:
            return None
        metadata = container.get("Metadata") or []
        return PlexItem.from_metadata(metadata[0]) if metadata else None

    def search(self, query: str) -> List[PlexItem]:
        container = self._get_container("/search", params={"query": query})
        if container is None:
            return []
        return [PlexItem.from_metadata(m) for m in container.get("Metadata") or []]

    def refresh_library(self, section_id: str) -> bool:
        """Asks the server to scan a library section. Returns immediately; the scan runs on the server."""
        # The refresh endpoint answers with an empty body, so only the status is checked.
        url = f"{self.base_url}/library/sections/{section_id}/refresh"
        try:
            response = self.session.get(url, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Plex library refresh failed for section {section_id}: {e}")
            return False
        logger.info(f"Requested refresh of Plex library section {section_id}")
        return True
