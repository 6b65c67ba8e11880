"""
Roster refresh module.

Re-scrapes every competing team's page for a round and rewrites its
deduction and fifteen-player roster; resolves which players are in play.
"""

import logging
from typing import Set

from database.supabase_client import SupabaseClient
from fpl_site.client import FPLSiteClient
from fpl_site.extractors import parse_deduction, parse_roster
from sync.models import Round

logger = logging.getLogger(__name__)


class RoundNotFoundError(LookupError):
    """Raised when an operation needs a round that has not been created."""
    pass


def load_round(db_client: SupabaseClient, week: int) -> Round:
    """Fetch a round from the store or raise RoundNotFoundError."""
    row = db_client.get_round(week)
    if row is None:
        raise RoundNotFoundError(f"No round for week {week}")
    return Round.from_row(row)


class RosterSynchronizer:
    """Handles team roster refresh operations."""

    def __init__(
        self,
        site_client: FPLSiteClient,
        db_client: SupabaseClient
    ):
        self.site_client = site_client
        self.db_client = db_client

    async def sync_rosters(self, week: int) -> Round:
        """
        Refresh deduction and roster for every team in the round.

        Teams are fetched one after another; each team is written as soon
        as it is parsed, so readers may see a round with some rosters
        refreshed and some not while this runs.

        Args:
            week: Competition week

        Returns:
            The round as persisted after the refresh

        Raises:
            RoundNotFoundError: If the week has no round
            FPLSiteError: If a team page cannot be fetched
            ExtractionError: If a team page is missing a roster slot
        """
        round_ = load_round(self.db_client, week)

        for team in round_.teams:
            logger.info("Fetching team", extra={"week": week, "team_id": team.team_id})
            soup = await self.site_client.get_entry_event_history(team.team_id, week)

            team.deduction = parse_deduction(soup)
            team.players = parse_roster(soup)

            self.db_client.update_round(week, {"teams": [t.to_row() for t in round_.teams]})

            captain = team.captain
            logger.info("Team roster updated", extra={
                "week": week,
                "team_id": team.team_id,
                "team_name": team.name,
                "deduction": team.deduction,
                "player_count": len(team.players),
                "captain_id": captain.player_id if captain else None,
            })
            if captain is None:
                logger.warning("Team has no captain", extra={"week": week, "team_id": team.team_id})

        return round_

    def relevant_players(self, week: int) -> Set[int]:
        """
        Players fielded by any team in the round, deduplicated.

        Args:
            week: Competition week

        Returns:
            Set of FPL player IDs
        """
        round_ = load_round(self.db_client, week)
        return {player.player_id for team in round_.teams for player in team.players}
