"""
Supabase client for database operations.

Two tables back the tracker: `rounds` (one row per week, teams and fixtures
embedded as JSONB) and `global_players` (one row per player per week).
Uniqueness of `rounds.week` and `global_players (player_id, week)` is
enforced by the schema, so inserts of an existing key fail.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from supabase import create_client, Client

from config import Config

logger = logging.getLogger(__name__)

ROUNDS_TABLE = "rounds"
GLOBAL_PLAYERS_TABLE = "global_players"


class SupabaseClient:
    """Client for interacting with Supabase database."""

    def __init__(self, config: Config):
        self.config = config
        self.client: Optional[Client] = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize Supabase client."""
        if not self.config.supabase_url or not self.config.supabase_key:
            raise ValueError("Supabase URL and key are required")

        # Use service key if available for writes under RLS, otherwise use anon key
        key = self.config.supabase_service_key or self.config.supabase_key

        self.client = create_client(
            self.config.supabase_url,
            key
        )

        logger.info("Initialized Supabase client", extra={
            "url": self.config.supabase_url,
            "using_service_key": bool(self.config.supabase_service_key)
        })

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # Rounds

    def get_round(self, week: int) -> Optional[Dict[str, Any]]:
        """
        Get the round row for a week.

        Args:
            week: Competition week

        Returns:
            Round row dictionary, or None if the week has no round yet
        """
        result = (
            self.client.table(ROUNDS_TABLE)
            .select("week, teams, fixtures")
            .eq("week", week)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return rows[0] if rows else None

    def insert_round(self, round_data: Dict[str, Any]):
        """
        Insert a new round. Fails on an existing week (unique constraint).

        Args:
            round_data: Round row with week, teams and fixtures
        """
        row = dict(round_data)
        row["updated_at"] = self._now()
        result = self.client.table(ROUNDS_TABLE).insert(row).execute()

        logger.debug("Inserted round", extra={"week": round_data.get("week")})

        return result.data

    def update_round(self, week: int, fields: Dict[str, Any]):
        """
        Overwrite the given columns of one round.

        Args:
            week: Competition week
            fields: Columns to write (e.g. teams or fixtures)
        """
        payload = dict(fields)
        payload["updated_at"] = self._now()
        result = self.client.table(ROUNDS_TABLE).update(payload).eq("week", week).execute()
        return result.data

    # Global players

    def get_global_player(self, player_id: int, week: int) -> Optional[Dict[str, Any]]:
        """Get one player's score-tracking row for a week, or None."""
        result = (
            self.client.table(GLOBAL_PLAYERS_TABLE)
            .select("player_id, week, name, team, shirt, position, updated, last_change, total_score, details")
            .eq("player_id", player_id)
            .eq("week", week)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return rows[0] if rows else None

    def get_global_player_ids(self, week: int, player_ids: Iterable[int]) -> Set[int]:
        """
        Return which of the given players already have a row for the week.

        Args:
            week: Competition week
            player_ids: Candidate player IDs

        Returns:
            Subset of player_ids present in global_players for the week
        """
        ids = list(player_ids)
        if not ids:
            return set()
        rows = (
            self.client.table(GLOBAL_PLAYERS_TABLE)
            .select("player_id")
            .eq("week", week)
            .in_("player_id", ids)
            .execute()
        ).data or []
        return {r["player_id"] for r in rows}

    def insert_global_player(self, player_data: Dict[str, Any]):
        """
        Insert a global player row. Fails on an existing (player_id, week).

        Args:
            player_data: Global player row dictionary
        """
        row = dict(player_data)
        row["updated_at"] = self._now()
        result = self.client.table(GLOBAL_PLAYERS_TABLE).insert(row).execute()
        return result.data

    def update_global_player(self, player_id: int, week: int, fields: Dict[str, Any]):
        """
        Overwrite the given columns of one global player row.

        Args:
            player_id: FPL player ID
            week: Competition week
            fields: Columns to write
        """
        payload = dict(fields)
        payload["updated_at"] = self._now()
        result = (
            self.client.table(GLOBAL_PLAYERS_TABLE)
            .update(payload)
            .eq("player_id", player_id)
            .eq("week", week)
            .execute()
        )
        return result.data

    def get_global_players(self, week: int) -> List[Dict[str, Any]]:
        """Get every global player row for a week, most recently changed first."""
        result = (
            self.client.table(GLOBAL_PLAYERS_TABLE)
            .select("player_id, week, name, team, shirt, position, updated, last_change, total_score, details")
            .eq("week", week)
            .order("last_change", desc=True)
            .execute()
        )
        return result.data or []
