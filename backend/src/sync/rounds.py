"""
Round baseline module.

A round is created once per week with the fixed set of competing teams;
every later call for the same week leaves it alone.
"""

import logging
from typing import List, Tuple

from database.supabase_client import SupabaseClient
from sync.models import Round, Team
from sync.rosters import RosterSynchronizer

logger = logging.getLogger(__name__)

# (team_id, name) of every team in the competition
COMPETING_TEAMS: List[Tuple[int, str]] = [
    (16665, "Oskar"),
    (55465, "Anders"),
    (1113, "Magnus"),
    (413689, "Robert"),
    (985532, "Martin"),
]


class RoundInitializer:
    """Creates the baseline round for a week."""

    def __init__(
        self,
        db_client: SupabaseClient,
        roster_synchronizer: RosterSynchronizer,
    ):
        self.db_client = db_client
        self.roster_synchronizer = roster_synchronizer

    async def ensure_round(self, week: int) -> bool:
        """
        Create the round for a week if it does not exist yet.

        A new round starts with empty rosters and zero deductions and is
        immediately populated by a roster sync.

        Args:
            week: Competition week

        Returns:
            True if the round was created, False if it already existed
        """
        if self.db_client.get_round(week) is not None:
            logger.info("Round already built, nothing to do", extra={"week": week})
            return False

        teams = [Team(team_id=team_id, name=name) for team_id, name in COMPETING_TEAMS]
        self.db_client.insert_round(Round(week=week, teams=teams).to_row())
        logger.info("Created round", extra={"week": week, "team_count": len(teams)})

        await self.roster_synchronizer.sync_rosters(week)
        logger.info("Built teams for round", extra={"week": week})
        return True
