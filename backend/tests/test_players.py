"""Tests for the score change detector and the global player registry."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from fakes import FakeSiteClient, FakeStore, element
from fpl_site.client import FPLSiteError
from sync.players import (
    CREATED,
    EXISTS,
    MISSING,
    SKIPPED,
    UNCHANGED,
    UPDATED,
    GlobalPlayerRegistry,
    is_significant_change,
)

WEEK = 6
KICKOFF = datetime(2013, 9, 28, 15, 0, tzinfo=timezone.utc)

BASE_EXPLAIN = [["Minutes played", 90, 2], ["Goals scored", 1, 4]]


class Clock:
    """Returns a later time on every call."""

    def __init__(self, start=KICKOFF):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(minutes=2)
        return self.now


class TestIsSignificantChange:
    def test_identical_is_not_significant(self):
        assert is_significant_change(BASE_EXPLAIN, [list(e) for e in BASE_EXPLAIN]) is False

    def test_non_value_fields_are_noise(self):
        fetched = [["Minutes", 89, 2], ["Goal", 1, 4]]
        assert is_significant_change(BASE_EXPLAIN, fetched) is False

    def test_value_change_at_any_index_is_significant(self):
        assert is_significant_change(BASE_EXPLAIN, [["Minutes played", 90, 1], ["Goals scored", 1, 4]])
        assert is_significant_change(BASE_EXPLAIN, [["Minutes played", 90, 2], ["Goals scored", 2, 8]])

    def test_length_change_is_significant(self):
        assert is_significant_change(BASE_EXPLAIN, BASE_EXPLAIN + [["Assists", 1, 3]])
        assert is_significant_change(BASE_EXPLAIN, BASE_EXPLAIN[:1])
        assert is_significant_change([], [["Minutes played", 30, 1]])

    def test_both_empty_is_not_significant(self):
        assert is_significant_change([], []) is False

    def test_event_without_value_is_significant(self):
        assert is_significant_change([["Minutes played", 90]], [["Minutes played", 90, 2]])

    def test_tuples_and_lists_compare_by_value(self):
        assert is_significant_change([("Bonus", 1, 1)], [["Bonus", 1, 1]]) is False


def _registry(elements, store=None, clock=None):
    store = store or FakeStore()
    site = FakeSiteClient(elements=elements)
    return GlobalPlayerRegistry(site, store, clock=clock or Clock()), store, site


class TestEnsureGlobalPlayers:
    def test_creates_each_player_once(self):
        registry, store, site = _registry({
            10: element("Walcott", 6, BASE_EXPLAIN),
            11: element("Rooney", 2, [["Minutes played", 90, 2]], team="Man Utd"),
        })

        first = asyncio.run(registry.ensure_global_players(WEEK, [10, 11, 10]))
        second = asyncio.run(registry.ensure_global_players(WEEK, [10, 11]))

        assert first.count(CREATED) == 2
        assert second.count(EXISTS) == 2
        assert store.write_count("insert_global_player") == 2
        assert len(store.global_players) == 2
        assert [c for c in site.calls if c[0] == "element"] == [("element", 10), ("element", 11)]

    def test_seeded_row_uses_fetch_time_for_both_timestamps(self):
        clock = Clock()
        registry, store, _ = _registry({10: element("Walcott", 6, BASE_EXPLAIN)}, clock=clock)

        asyncio.run(registry.ensure_global_players(WEEK, [10]))

        row = store.global_players[(10, WEEK)]
        assert row["updated"] == row["last_change"] == clock.now.isoformat()
        assert row["total_score"] == 6
        assert row["details"] == BASE_EXPLAIN
        assert row["name"] == "Walcott"

    def test_same_player_other_week_is_a_separate_record(self):
        registry, store, _ = _registry({10: element("Walcott", 6, BASE_EXPLAIN)})

        asyncio.run(registry.ensure_global_players(WEEK, [10]))
        asyncio.run(registry.ensure_global_players(WEEK + 1, [10]))

        assert set(store.global_players) == {(10, WEEK), (10, WEEK + 1)}

    def test_fetch_failure_skips_only_that_player(self):
        registry, store, _ = _registry({
            10: FPLSiteError("timeout"),
            11: element("Rooney", 2, [["Minutes played", 90, 2]]),
        })

        summary = asyncio.run(registry.ensure_global_players(WEEK, [10, 11]))

        assert summary.skipped_ids == [10]
        assert summary.count(CREATED) == 1
        assert (11, WEEK) in store.global_players

    def test_malformed_payload_skips_only_that_player(self):
        bad = element("Walcott", 6, BASE_EXPLAIN)
        bad["event_explain"] = [["Minutes played", 90, 2], 7]
        registry, store, _ = _registry({
            10: bad,
            11: element("Rooney", 2, [["Minutes played", 90, 2]]),
        })

        summary = asyncio.run(registry.ensure_global_players(WEEK, [10, 11]))

        assert summary.skipped_ids == [10]
        assert "malformed" in summary.results[0].reason
        assert set(store.global_players) == {(11, WEEK)}


class TestUpdateScores:
    def _seeded(self, explain=BASE_EXPLAIN, points=6):
        clock = Clock()
        elements = {10: element("Walcott", points, explain)}
        registry, store, site = _registry(elements, clock=clock)
        asyncio.run(registry.ensure_global_players(WEEK, [10]))
        return registry, store, site, clock

    def test_identical_fetch_writes_nothing(self):
        registry, store, _, _ = self._seeded()
        before = dict(store.global_players[(10, WEEK)])

        summary = asyncio.run(registry.update_scores(WEEK, [10]))

        assert summary.count(UNCHANGED) == 1
        assert store.write_count("update_global_player") == 0
        assert store.global_players[(10, WEEK)] == before

    def test_cosmetic_change_moves_updated_but_not_last_change(self):
        registry, store, site, clock = self._seeded()
        seeded = dict(store.global_players[(10, WEEK)])
        site.elements[10] = element("Walcott", 6, [["Minutes", 90, 2], ["Goals", 1, 4]])

        summary = asyncio.run(registry.update_scores(WEEK, [10]))

        row = store.global_players[(10, WEEK)]
        assert summary.count(UPDATED) == 1
        assert summary.changed_ids == []
        assert row["details"] == [["Minutes", 90, 2], ["Goals", 1, 4]]
        assert row["updated"] == clock.now.isoformat()
        assert row["updated"] != seeded["updated"]
        assert row["last_change"] == seeded["last_change"]

    def test_value_change_moves_both_timestamps(self):
        registry, store, site, clock = self._seeded()
        site.elements[10] = element("Walcott", 9, BASE_EXPLAIN + [["Assists", 1, 3]])

        summary = asyncio.run(registry.update_scores(WEEK, [10]))

        row = store.global_players[(10, WEEK)]
        assert summary.changed_ids == [10]
        assert row["total_score"] == 9
        assert row["updated"] == row["last_change"] == clock.now.isoformat()

    def test_fetch_failure_is_skipped_and_the_rest_continue(self):
        registry, store, site, _ = self._seeded()
        site.elements[11] = element("Rooney", 2, [["Minutes played", 90, 2]])
        asyncio.run(registry.ensure_global_players(WEEK, [11]))
        site.elements[10] = FPLSiteError("503")
        site.elements[11] = element("Rooney", 6, [["Minutes played", 90, 2], ["Goals scored", 1, 4]])

        summary = asyncio.run(registry.update_scores(WEEK, [10, 11]))

        assert summary.skipped_ids == [10]
        assert summary.results[0].reason == "503"
        assert summary.changed_ids == [11]
        assert store.global_players[(11, WEEK)]["total_score"] == 6

    def test_malformed_payload_is_skipped_and_the_rest_continue(self):
        registry, store, site, _ = self._seeded()
        site.elements[11] = element("Rooney", 2, [["Minutes played", 90, 2]])
        asyncio.run(registry.ensure_global_players(WEEK, [11]))
        before = dict(store.global_players[(10, WEEK)])
        broken = element("Walcott", 6, BASE_EXPLAIN + [["Assists", 1, 3]])
        broken["event_points"] = "n/a"
        site.elements[10] = broken
        site.elements[11] = element("Rooney", 6, [["Minutes played", 90, 2], ["Goals scored", 1, 4]])

        summary = asyncio.run(registry.update_scores(WEEK, [10, 11]))

        assert summary.skipped_ids == [10]
        assert "malformed" in summary.results[0].reason
        assert summary.changed_ids == [11]
        assert store.global_players[(10, WEEK)] == before
        assert store.global_players[(11, WEEK)]["total_score"] == 6

    def test_player_without_record_is_reported_missing(self):
        registry, store, site, _ = self._seeded()
        site.elements[12] = element("Cazorla", 1, [["Minutes played", 20, 1]])

        summary = asyncio.run(registry.update_scores(WEEK, [12]))

        assert summary.count(MISSING) == 1
        assert store.write_count("update_global_player") == 0

    def test_summary_log_extra_counts(self):
        registry, _, site, _ = self._seeded()
        site.elements[11] = FPLSiteError("boom")

        summary = asyncio.run(registry.update_scores(WEEK, [10, 11]))

        extra = summary.as_log_extra()
        assert extra["week"] == WEEK
        assert extra["unchanged"] == 1
        assert extra["skipped"] == 1
        assert summary.count(SKIPPED) == 1


@pytest.mark.parametrize("stored,fetched,expected", [
    ([["A", 1, 1]], [["A", 1, 1]], False),
    ([["A", 1, 1]], [["B", 2, 1]], False),
    ([["A", 1, 1]], [["A", 1, 2]], True),
    ([["A", 1, 1], ["B", 1, 1]], [["A", 1, 1]], True),
])
def test_significance_table(stored, fetched, expected):
    assert is_significant_change(stored, fetched) is expected
