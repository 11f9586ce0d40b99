"""Tests for the Plex Media Server client."""

import pytest
import requests

from conftest import FakeResponse, FakeSession

from media_workflow.config.common import PLEX_TV_SIGN_IN_URL
from media_workflow.services.plex_client import PlexClient, sign_in

BASE = "http://plex.local:32400"


def client(routes):
    session = FakeSession(routes)
    return PlexClient(BASE + "/", "secret-token", session=session), session


def test_token_and_accept_headers_are_sent():
    plex, session = client({})

    assert session.headers["X-Plex-Token"] == "secret-token"
    assert session.headers["Accept"] == "application/json"


def test_missing_url_or_token_is_rejected():
    with pytest.raises(ValueError):
        PlexClient("", "token", session=FakeSession())
    with pytest.raises(ValueError):
        PlexClient(BASE, None, session=FakeSession())


def test_server_info():
    plex, _ = client({("GET", BASE + "/"): FakeResponse({"MediaContainer": {
        "friendlyName": "Basement", "version": "1.40.1", "machineIdentifier": "abc123", "platform": "Linux",
    }})})

    info = plex.get_server_info()

    assert (info.name, info.version, info.machine_identifier, info.platform) == (
        "Basement", "1.40.1", "abc123", "Linux"
    )


def test_libraries_with_locations():
    plex, _ = client({("GET", BASE + "/library/sections"): FakeResponse({"MediaContainer": {"Directory": [
        {"key": "1", "title": "Movies", "type": "movie", "Location": [{"path": "/data/movies"}]},
        {"key": "2", "title": "TV Shows", "type": "show", "Location": [{"path": "/data/tv"}, {"path": "/nas/tv"}]},
    ]}})})

    libraries = plex.get_libraries()

    assert [lib.title for lib in libraries] == ["Movies", "TV Shows"]
    assert libraries[1].key == "2"
    assert libraries[1].locations == ["/data/tv", "/nas/tv"]


def test_library_items_collect_file_paths():
    plex, _ = client({("GET", BASE + "/library/sections/2/all"): FakeResponse({"MediaContainer": {"Metadata": [
        {"ratingKey": 501, "title": "Serenity", "type": "episode", "grandparentTitle": "Firefly", "index": 1,
         "Media": [{"Part": [{"file": "/data/tv/Firefly/Season 01/Firefly - s01e01 - Serenity.mkv"}]}]},
    ]}})})

    items = plex.get_library_items("2")

    assert items[0].rating_key == "501"
    assert items[0].parent_title == "Firefly"
    assert items[0].file_paths == ["/data/tv/Firefly/Season 01/Firefly - s01e01 - Serenity.mkv"]


def test_search_passes_query():
    plex, session = client({("GET", BASE + "/search"): FakeResponse({"MediaContainer": {"Metadata": [
        {"ratingKey": "7", "title": "Firefly", "type": "show", "year": 2002},
    ]}})})

    results = plex.search("firefly")

    assert results[0].year == 2002
    assert session.requests[0]["params"] == {"query": "firefly"}


def test_get_item_missing_metadata_is_none():
    plex, _ = client({("GET", BASE + "/library/metadata/9"): FakeResponse({"MediaContainer": {"size": 0}})})

    assert plex.get_item("9") is None


def test_http_errors_become_empty_results(log_messages):
    plex, _ = client({
        ("GET", BASE + "/library/sections"): FakeResponse(status_code=401),
        ("GET", BASE + "/"): requests.exceptions.ConnectionError("refused"),
    })

    assert plex.get_libraries() == []
    assert plex.get_server_info() is None
    assert any(m.startswith("ERROR") for m in log_messages)


def test_response_without_media_container_is_none():
    plex, _ = client({("GET", BASE + "/"): FakeResponse({"unexpected": True})})

    assert plex.get_server_info() is None


def test_refresh_library_checks_status_only():
    plex, _ = client({
        ("GET", BASE + "/library/sections/2/refresh"): FakeResponse(),
        ("GET", BASE + "/library/sections/3/refresh"): FakeResponse(status_code=404),
    })

    assert plex.refresh_library("2") is True
    assert plex.refresh_library("3") is False


def test_sign_in_returns_auth_token():
    session = FakeSession({("POST", PLEX_TV_SIGN_IN_URL): FakeResponse({"user": {"authToken": "tok-1"}})})

    token = sign_in("alice", "hunter2", client_identifier="client-1", session=session)

    assert token == "tok-1"
    request = session.requests[0]
    assert request["auth"] == ("alice", "hunter2")
    assert request["headers"]["X-Plex-Client-Identifier"] == "client-1"


def test_sign_in_failure_returns_none():
    session = FakeSession({("POST", PLEX_TV_SIGN_IN_URL): FakeResponse(status_code=401)})

    assert sign_in("alice", "wrong", session=session) is None


def test_sign_in_without_token_returns_none():
    session = FakeSession({("POST", PLEX_TV_SIGN_IN_URL): FakeResponse({"user": {}})})

    assert sign_in("alice", "hunter2", session=session) is None
