"""Tests for the TVDb episode lookup client."""

import pytest
import requests

from conftest import FakeResponse, FakeSession

from media_workflow.domain.exceptions import MetadataLookupError
from media_workflow.domain.models import Episode
from media_workflow.services.tvdb_client import TvdbClient

BASE = "https://api.test/v4"
LOGIN = ("POST", BASE + "/login")
EPISODES = ("GET", BASE + "/series/78874/episodes/default")


def logged_in_routes():
    return {LOGIN: FakeResponse({"data": {"token": "bearer-1"}})}


def episode(number, name, season=1, episode_id=None):
    return {"id": episode_id or 1000 + number, "seasonNumber": season, "number": number, "name": name}


def test_missing_api_key_is_rejected():
    with pytest.raises(MetadataLookupError):
        TvdbClient("", session=FakeSession())


def test_login_sets_bearer_header_and_sends_pin():
    session = FakeSession(logged_in_routes())
    tvdb = TvdbClient("key-1", pin="1234", base_url=BASE, session=session)

    assert tvdb.login()

    assert session.headers["Authorization"] == "Bearer bearer-1"
    assert session.requests[0]["json"] == {"apikey": "key-1", "pin": "1234"}


def test_login_failure(log_messages):
    session = FakeSession({LOGIN: FakeResponse(status_code=401)})
    tvdb = TvdbClient("bad", base_url=BASE, session=session)

    assert not tvdb.login()
    assert tvdb.get_season_episodes(78874, 1) == []
    assert any(m.startswith("ERROR") and "login" in m for m in log_messages)


def test_season_episodes_are_filtered_and_sorted():
    session = FakeSession(logged_in_routes())
    session.routes[EPISODES] = FakeResponse({"data": {"episodes": [
        episode(2, "The Train Job"),
        episode(1, "Serenity"),
        episode(0, "Unaired Pilot", season=0),
        {"id": 99, "seasonNumber": 1, "number": None, "name": "Special"},
    ]}, "links": {"next": None}})
    tvdb = TvdbClient("key-1", base_url=BASE, session=session)

    episodes = tvdb.get_season_episodes(78874, 1)

    assert episodes == [Episode(1001, 1, 1, "Serenity"), Episode(1002, 1, 2, "The Train Job")]
    assert session.requests[1]["params"] == {"season": 1, "page": 0}


def test_season_episodes_follow_pagination():
    session = FakeSession(logged_in_routes())
    session.routes[EPISODES] = [
        FakeResponse({"data": {"episodes": [episode(1, "Serenity")]}, "links": {"next": "page=1"}}),
        FakeResponse({"data": {"episodes": [episode(2, "The Train Job")]}, "links": {"next": None}}),
    ]
    tvdb = TvdbClient("key-1", base_url=BASE, session=session)

    episodes = tvdb.get_season_episodes(78874, 1)

    assert [e.episode_number for e in episodes] == [1, 2]
    assert [r["params"]["page"] for r in session.requests[1:]] == [0, 1]


def test_login_happens_once():
    session = FakeSession(logged_in_routes())
    session.routes[EPISODES] = [
        FakeResponse({"data": {"episodes": []}, "links": {}}),
        FakeResponse({"data": {"episodes": []}, "links": {}}),
    ]
    tvdb = TvdbClient("key-1", base_url=BASE, session=session)

    tvdb.get_season_episodes(78874, 1)
    tvdb.get_season_episodes(78874, 1)

    assert [r["method"] for r in session.requests].count("POST") == 1


def test_request_error_returns_empty_list():
    session = FakeSession(logged_in_routes())
    session.routes[EPISODES] = requests.exceptions.Timeout("slow")
    tvdb = TvdbClient("key-1", base_url=BASE, session=session)

    assert tvdb.get_season_episodes(78874, 1) == []


def test_search_series():
    session = FakeSession(logged_in_routes())
    session.routes[("GET", BASE + "/search")] = FakeResponse({"data": [{"tvdb_id": "78874", "name": "Firefly"}]})
    tvdb = TvdbClient("key-1", base_url=BASE, session=session)

    results = tvdb.search_series("Firefly")

    assert results[0]["tvdb_id"] == "78874"
    assert session.requests[1]["params"] == {"query": "Firefly", "type": "series"}
