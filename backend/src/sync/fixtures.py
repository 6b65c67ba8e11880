"""
Match result refresh module.

Rebuilds a round's fixture list from the fixture index and each fixture's
detail page. The stored list is replaced wholesale, never merged.
"""

import logging
from typing import List

from database.supabase_client import SupabaseClient
from fpl_site.client import FPLSiteClient
from fpl_site.extractors import (
    DEFAULT_FIXTURE_SCHEMA,
    FixtureTableSchema,
    parse_fixture,
    parse_fixture_ids,
)
from sync.models import Fixture
from sync.rosters import load_round

logger = logging.getLogger(__name__)


class MatchResultSynchronizer:
    """Handles fixture result refresh operations."""

    def __init__(
        self,
        site_client: FPLSiteClient,
        db_client: SupabaseClient,
        schema: FixtureTableSchema = DEFAULT_FIXTURE_SCHEMA,
    ):
        self.site_client = site_client
        self.db_client = db_client
        self.schema = schema

    async def sync_fixtures(self, week: int) -> List[Fixture]:
        """
        Replace the round's fixtures with freshly extracted ones.

        Nothing is written unless every fixture page was fetched and parsed.

        Args:
            week: Competition week

        Returns:
            The fixtures now stored for the round

        Raises:
            RoundNotFoundError: If the week has no round
            FPLSiteError: If the index or a fixture page cannot be fetched
            ExtractionError: If a fixture page does not match the schema
        """
        logger.info("Updating results", extra={"week": week})
        load_round(self.db_client, week)

        index = await self.site_client.get_fixtures_page(week)
        fixture_ids = parse_fixture_ids(index)
        if not fixture_ids:
            logger.warning("No fixtures listed for round", extra={"week": week})

        fixtures = []
        for fixture_id in fixture_ids:
            page = await self.site_client.get_fixture_page(fixture_id)
            fixture = parse_fixture(page, fixture_id, self.schema)
            logger.debug("Parsed fixture", extra={
                "week": week,
                "fixture_id": fixture_id,
                "goals": len(fixture.goals),
            })
            fixtures.append(fixture)

        self.db_client.update_round(week, {"fixtures": [f.to_row() for f in fixtures]})
        logger.info("Updated results", extra={"week": week, "fixture_count": len(fixtures)})
        return fixtures
