"""
Player score refresh module.

Keeps one score-tracking row per player per week and decides whether a
re-fetched scoring breakdown is a real change or just noise.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from database.supabase_client import SupabaseClient
from fpl_site.client import FPLSiteClient, FPLSiteError
from fpl_site.extractors import ExtractionError, parse_element_scores, parse_global_player
from sync.models import GlobalPlayer, utc_now

logger = logging.getLogger(__name__)

# Position of the points value within an event_explain entry
VALUE_INDEX = 2

CREATED = "created"
EXISTS = "exists"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
MISSING = "missing"


def is_significant_change(stored: Sequence[Sequence[Any]], fetched: Sequence[Sequence[Any]]) -> bool:
    """
    Whether a fetched scoring breakdown changes any points value.

    A different number of events is always significant. Otherwise events
    are compared position by position on their value field only; the first
    mismatch decides. An event too short to carry a value counts as a
    mismatch.
    """
    if len(stored) != len(fetched):
        return True

    for old_event, new_event in zip(stored, fetched):
        try:
            if old_event[VALUE_INDEX] != new_event[VALUE_INDEX]:
                return True
        except (IndexError, TypeError):
            return True

    return False


@dataclass
class ScoreUpdateResult:
    """Outcome for one player in an ensure or update pass."""

    player_id: int
    status: str
    significant: bool = False
    total_score: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class ScoreUpdateSummary:
    """Per-pass collection of results, so callers can see who was skipped and why."""

    week: int
    results: List[ScoreUpdateResult] = field(default_factory=list)

    def add(self, result: ScoreUpdateResult):
        self.results.append(result)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def skipped_ids(self) -> List[int]:
        return [r.player_id for r in self.results if r.status == SKIPPED]

    @property
    def changed_ids(self) -> List[int]:
        """Players whose points changed significantly in this pass."""
        return [r.player_id for r in self.results if r.status == UPDATED and r.significant]

    def as_log_extra(self) -> Dict[str, Any]:
        return {
            "week": self.week,
            "created": self.count(CREATED),
            "updated": self.count(UPDATED),
            "unchanged": self.count(UNCHANGED),
            "skipped": self.count(SKIPPED),
            "missing": self.count(MISSING),
            "changed": len(self.changed_ids),
        }


class GlobalPlayerRegistry:
    """Handles per-week player score records."""

    def __init__(
        self,
        site_client: FPLSiteClient,
        db_client: SupabaseClient,
        clock: Callable = utc_now,
    ):
        self.site_client = site_client
        self.db_client = db_client
        self.clock = clock

    async def ensure_global_players(self, week: int, player_ids: Iterable[int]) -> ScoreUpdateSummary:
        """
        Create a score row for every player that does not have one for the week.

        Args:
            week: Competition week
            player_ids: Players in play this week

        Returns:
            Summary with a created/exists/skipped result per player
        """
        ids = sorted(set(player_ids))
        summary = ScoreUpdateSummary(week=week)
        existing = self.db_client.get_global_player_ids(week, ids)

        for player_id in ids:
            if player_id in existing:
                summary.add(ScoreUpdateResult(player_id, EXISTS))
                continue

            logger.info("Creating global player", extra={"player_id": player_id, "week": week})
            try:
                payload = await self.site_client.get_element(player_id)
                player = parse_global_player(payload, player_id, week, self.clock())
            except (FPLSiteError, ExtractionError) as e:
                logger.warning("Could not load new player, skipping", extra={
                    "player_id": player_id,
                    "week": week,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
                summary.add(ScoreUpdateResult(player_id, SKIPPED, reason=str(e)))
                continue

            self.db_client.insert_global_player(player.to_row())
            summary.add(ScoreUpdateResult(player_id, CREATED, total_score=player.total_score))

        if summary.count(CREATED):
            logger.info("Global players created", extra=summary.as_log_extra())
        return summary

    async def update_scores(self, week: int, player_ids: Iterable[int]) -> ScoreUpdateSummary:
        """
        Re-fetch every player's breakdown and record what changed.

        A player whose fetch fails or whose payload is malformed is skipped
        without stopping the pass. A breakdown equal to the stored one is not
        written at all; otherwise details, total and `updated` are written,
        and `last_change` only when a points value changed.

        Args:
            week: Competition week
            player_ids: Players in play this week

        Returns:
            Summary with one result per player
        """
        ids = sorted(set(player_ids))
        summary = ScoreUpdateSummary(week=week)
        logger.info("Updating player scores", extra={"week": week, "player_count": len(ids)})

        for player_id in ids:
            try:
                payload = await self.site_client.get_element(player_id)
                total_score, fetched = parse_element_scores(payload, player_id)
            except (FPLSiteError, ExtractionError) as e:
                logger.warning("Couldn't get player, skipping", extra={
                    "player_id": player_id,
                    "week": week,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
                summary.add(ScoreUpdateResult(player_id, SKIPPED, reason=str(e)))
                continue

            row = self.db_client.get_global_player(player_id, week)
            if row is None:
                logger.warning("No score record for player, skipping", extra={
                    "player_id": player_id,
                    "week": week,
                })
                summary.add(ScoreUpdateResult(player_id, MISSING, reason="no score record"))
                continue

            summary.add(self._apply_update(GlobalPlayer.from_row(row), total_score, fetched))

        logger.info("Player scores updated", extra=summary.as_log_extra())
        return summary

    def _apply_update(self, player: GlobalPlayer, total_score: int, fetched: List[List[Any]]) -> ScoreUpdateResult:
        if fetched == player.details:
            return ScoreUpdateResult(player.player_id, UNCHANGED, total_score=player.total_score)

        significant = is_significant_change(player.details, fetched)
        now = self.clock()

        fields: Dict[str, Any] = {
            "details": fetched,
            "total_score": total_score,
            "updated": now.isoformat(),
        }
        if significant:
            fields["last_change"] = now.isoformat()
            logger.info("Player was changed", extra={"player_id": player.player_id, "week": player.week})

        self.db_client.update_global_player(player.player_id, player.week, fields)
        logger.info("Updated player", extra={
            "player_id": player.player_id,
            "week": player.week,
            "total_score": total_score,
            "significant": significant,
        })
        return ScoreUpdateResult(player.player_id, UPDATED, significant=significant, total_score=total_score)
