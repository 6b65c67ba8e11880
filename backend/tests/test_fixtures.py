"""Tests for match result sync."""

import asyncio

import pytest

from fakes import FakeSiteClient, FakeStore, detail_row, fixture_page, fixtures_index
from fpl_site.client import FPLSiteError
from fpl_site.extractors import ExtractionError
from sync.fixtures import MatchResultSynchronizer
from sync.rosters import RoundNotFoundError

WEEK = 3


def _setup(fixture_ids, pages):
    store = FakeStore()
    store.insert_round({"week": WEEK, "teams": [], "fixtures": [{"id": 1, "details": "stale"}]})
    site = FakeSiteClient(fixtures_index=fixtures_index(fixture_ids), fixture_pages=pages)
    return MatchResultSynchronizer(site, store), store, site


def test_replaces_fixture_list_wholesale():
    synchronizer, store, _ = _setup([21, 22], {
        21: fixture_page("Arsenal 1 - 0 Spurs", [detail_row("Giroud", gs=1, bps=30)]),
        22: fixture_page("Everton 0 - 0 Chelsea", [detail_row("Howard", s=5, bps=25)]),
    })

    fixtures = asyncio.run(synchronizer.sync_fixtures(WEEK))

    stored = store.rounds[WEEK]["fixtures"]
    assert [f["id"] for f in stored] == [21, 22]
    assert [f.id for f in fixtures] == [21, 22]
    assert stored[0]["goals"] == ["Giroud (1)"]
    assert stored[0]["details"] == "Arsenal 1 - 0 Spurs"
    assert stored[1]["saves"] == ["Howard (5)"]
    assert stored[1]["goals"] == []


def test_empty_index_clears_fixtures():
    synchronizer, store, _ = _setup([], {})

    assert asyncio.run(synchronizer.sync_fixtures(WEEK)) == []
    assert store.rounds[WEEK]["fixtures"] == []


def test_bad_fixture_page_leaves_stored_fixtures_untouched():
    synchronizer, store, _ = _setup([21, 22], {
        21: fixture_page("Arsenal 1 - 0 Spurs", [detail_row("Giroud", gs=1)]),
        22: "<html><body>maintenance</body></html>",
    })

    with pytest.raises(ExtractionError):
        asyncio.run(synchronizer.sync_fixtures(WEEK))

    assert store.rounds[WEEK]["fixtures"] == [{"id": 1, "details": "stale"}]


def test_fetch_failure_propagates():
    synchronizer, store, _ = _setup([21], {21: FPLSiteError("502")})

    with pytest.raises(FPLSiteError):
        asyncio.run(synchronizer.sync_fixtures(WEEK))
    assert store.write_count("update_round") == 0


def test_unknown_week_raises():
    synchronizer, _, site = _setup([21], {})
    with pytest.raises(RoundNotFoundError):
        asyncio.run(synchronizer.sync_fixtures(WEEK + 1))
    assert site.calls == []
