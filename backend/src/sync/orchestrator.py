"""
Sync Orchestrator - Coordinates one polling tick and the loop around it.

Each tick runs to completion before the next begins: ensure round ->
(forced) roster resync -> resolve players -> ensure score rows ->
update scores -> sync fixtures.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from config import Config
from database.supabase_client import SupabaseClient
from fpl_site.client import FPLSiteClient, FPLSiteError
from fpl_site.extractors import ExtractionError
from sync.fixtures import MatchResultSynchronizer
from sync.models import utc_now
from sync.players import GlobalPlayerRegistry, ScoreUpdateSummary
from sync.rosters import RosterSynchronizer, load_round
from sync.rounds import RoundInitializer

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What one tick did."""

    week: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    round_created: bool = False
    rosters_synced: bool = False
    player_count: int = 0
    ensured: Optional[ScoreUpdateSummary] = None
    scores: Optional[ScoreUpdateSummary] = None
    fixture_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class SyncOrchestrator:
    """Orchestrates the sync components for the configured week."""

    def __init__(
        self,
        config: Config,
        site_client: Optional[FPLSiteClient] = None,
        db_client: Optional[SupabaseClient] = None,
    ):
        self.config = config
        self.week = config.current_week
        self.force_fetch_teams = config.force_fetch_teams
        self.poll_interval = config.poll_interval
        self.site_client = site_client
        self.db_client = db_client
        self.roster_synchronizer: Optional[RosterSynchronizer] = None
        self.round_initializer: Optional[RoundInitializer] = None
        self.player_registry: Optional[GlobalPlayerRegistry] = None
        self.match_results: Optional[MatchResultSynchronizer] = None
        self.running = False
        self.last_report: Optional[TickReport] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def initialize(self):
        """Initialize clients and sync components."""
        logger.info("Orchestrator starting", extra={"week": self.week})

        if self.site_client is None:
            self.site_client = FPLSiteClient(self.config)
        if self.db_client is None:
            self.db_client = SupabaseClient(self.config)

        self.roster_synchronizer = RosterSynchronizer(self.site_client, self.db_client)
        self.round_initializer = RoundInitializer(self.db_client, self.roster_synchronizer)
        self.player_registry = GlobalPlayerRegistry(self.site_client, self.db_client)
        self.match_results = MatchResultSynchronizer(self.site_client, self.db_client)

        logger.info("Orchestrator ready")

    async def shutdown(self):
        """
        Ask the loop to stop.

        A tick already in progress runs to completion; the loop then exits
        without sleeping and releases the HTTP client.
        """
        logger.info("Orchestrator shutting down")
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def close(self):
        """Release the HTTP client."""
        if self.site_client:
            await self.site_client.close()
        logger.info("Orchestrator stopped")

    def _rosters_missing(self) -> bool:
        """True when some team in the round has never had its roster filled."""
        round_ = load_round(self.db_client, self.week)
        return any(not team.players for team in round_.teams)

    async def run_tick(self) -> TickReport:
        """
        Run one full sync sequence for the configured week.

        Fetch and extraction failures in roster or fixture sync end the tick
        early and are recorded on the report; per-player fetch failures are
        only counted in the score summaries. Store failures propagate.

        Returns:
            TickReport for this tick
        """
        week = self.week
        report = TickReport(week=week, started_at=utc_now())
        logger.info("Fetching data", extra={"week": week, "started_at": report.started_at.isoformat()})

        try:
            report.round_created = await self.round_initializer.ensure_round(week)
            report.rosters_synced = report.round_created

            if not report.round_created and (self.force_fetch_teams or self._rosters_missing()):
                await self.roster_synchronizer.sync_rosters(week)
                report.rosters_synced = True

            player_ids = self.roster_synchronizer.relevant_players(week)
            report.player_count = len(player_ids)

            report.ensured = await self.player_registry.ensure_global_players(week, player_ids)
            report.scores = await self.player_registry.update_scores(week, player_ids)

            fixtures = await self.match_results.sync_fixtures(week)
            report.fixture_count = len(fixtures)
        except (FPLSiteError, ExtractionError) as e:
            report.errors.append(f"{type(e).__name__}: {e}")
            logger.error("Tick aborted", extra={
                "week": week,
                "error": str(e),
                "error_type": type(e).__name__,
            })
        finally:
            report.finished_at = utc_now()
            self.last_report = report

        if report.ok:
            logger.info("Tick complete", extra={
                "week": week,
                "player_count": report.player_count,
                "skipped_players": report.scores.skipped_ids if report.scores else [],
                "changed_players": report.scores.changed_ids if report.scores else [],
                "fixture_count": report.fixture_count,
                "duration_seconds": round((report.finished_at - report.started_at).total_seconds(), 1),
            })
        return report

    async def _sleep(self, seconds: float):
        """Sleep between ticks, waking early on shutdown."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self):
        """Tick, sleep, repeat until shutdown."""
        logger.info("Sync loop started", extra={
            "week": self.week,
            "poll_interval": self.poll_interval,
            "force_fetch_teams": self.force_fetch_teams,
        })
        self.running = True
        self._stop_event = asyncio.Event()
        try:
            while self.running:
                await self.run_tick()
                if not self.running:
                    break
                logger.info("Now sleeping", extra={"seconds": self.poll_interval})
                await self._sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.info("Sync loop cancelled")
        finally:
            self.running = False
            logger.info("Sync loop exited")
            await self.close()
