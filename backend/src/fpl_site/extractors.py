"""
Record extractors for fantasy site pages.

Pure functions from a parsed document (or decoded JSON) to domain records.
Anything structurally missing raises ExtractionError; no fetching happens here.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from sync.models import Fixture, GlobalPlayer, RosterPlayer, normalize_details

ROSTER_SLOTS = 15

DEDUCTION_RE = re.compile(r"\(-(\d+)pts\)")
LEADING_INT_RE = re.compile(r"^-?\d+")

# Cards are listed by name only; every other category carries its value
UNVALUED_CATEGORIES = frozenset(["yellow_cards", "red_cards"])
COUNTED_CATEGORIES = (
    "goals",
    "assists",
    "own_goals",
    "penalties_saved",
    "penalties_missed",
    "yellow_cards",
    "red_cards",
    "saves",
)


class ExtractionError(Exception):
    """Raised when a page lacks the structure an extractor expects."""
    pass


def clean_text(text: Optional[str]) -> str:
    """Drop double-space indentation runs, turn newlines into spaces, trim."""
    if not text:
        return ""
    return text.replace("  ", "").replace("\n", " ").strip()


def _leading_int(text: str) -> int:
    match = LEADING_INT_RE.match(text.strip())
    return int(match.group(0)) if match else 0


def parse_deduction(soup: BeautifulSoup) -> int:
    """
    Points deduction from the team page's summary block.

    Looks for "(-Npts)" in the last <dd> of the summary definition list.
    No block or no annotation means no deduction.
    """
    entries = soup.select("dl.ismDefList.ismSBDefList dd")
    if not entries:
        return 0
    compact = re.sub(r"\s+", "", str(entries[-1]))
    match = DEDUCTION_RE.search(compact)
    return int(match.group(1)) if match else 0


def _slot_payload(soup: BeautifulSoup, slot: int) -> Dict[str, Any]:
    element = soup.select_one(f"#ismGraphical{slot}")
    if element is None:
        raise ExtractionError(f"Roster slot {slot} not found")
    raw = element.get("class")
    if isinstance(raw, list):
        raw = " ".join(raw)
    if not raw:
        raise ExtractionError(f"Roster slot {slot} has no class payload")
    start, end = raw.find("{"), raw.rfind("}")
    if start == -1 or end < start:
        raise ExtractionError(f"Roster slot {slot} has no embedded player data")
    try:
        payload = json.loads(raw[start:end + 1])
    except ValueError as e:
        raise ExtractionError(f"Roster slot {slot} has malformed player data: {e}") from e
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise ExtractionError(f"Roster slot {slot} player data has no id")
    return payload


def parse_roster(soup: BeautifulSoup, slots: int = ROSTER_SLOTS) -> List[RosterPlayer]:
    """
    The players a team fielded, in slot order.

    Each pitch slot element (#ismGraphical1..15) smuggles a JSON object into
    its class attribute carrying the player id and captaincy flags.
    """
    players = []
    for slot in range(1, slots + 1):
        payload = _slot_payload(soup, slot)
        try:
            player_id = int(payload["id"])
        except (TypeError, ValueError) as e:
            raise ExtractionError(f"Roster slot {slot} has a non-numeric id: {payload['id']!r}") from e
        players.append(RosterPlayer(
            player_id=player_id,
            captain=bool(payload.get("is_captain", False)),
            vice_captain=bool(payload.get("is_vice_captain", False)),
        ))
    return players


def parse_fixture_ids(soup: BeautifulSoup) -> List[int]:
    """Fixture ids linked from a round's fixture table, first-seen order, no repeats."""
    seen = set()
    ids = []
    for link in soup.select("#ismFixtureTable a[data-id]"):
        raw = (link.get("data-id") or "").strip()
        if not raw.isdigit():
            continue
        fixture_id = int(raw)
        if fixture_id not in seen:
            seen.add(fixture_id)
            ids.append(fixture_id)
    return ids


@dataclass(frozen=True)
class FixtureTableSchema:
    """
    Column layout of the fixture detail table.

    `columns` maps semantic field -> cell position within a row;
    `headers` optionally maps field -> expected header label, checked
    against the table's header row so a reshuffled layout fails loudly.
    """

    columns: Mapping[str, int]
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        required = ("name", "bps") + COUNTED_CATEGORIES
        missing = [name for name in required if name not in self.columns]
        if missing:
            raise ValueError(f"Fixture table schema missing columns: {', '.join(missing)}")

        positions = list(self.columns.values())
        for name, position in self.columns.items():
            if not isinstance(position, int) or isinstance(position, bool) or position < 0:
                raise ValueError(f"Column {name!r} must be a non-negative integer, got {position!r}")
        if len(set(positions)) != len(positions):
            raise ValueError("Fixture table schema maps two fields to the same column")

        unknown = [name for name in self.headers if name not in self.columns]
        if unknown:
            raise ValueError(f"Header labels given for unknown columns: {', '.join(unknown)}")

    @property
    def width(self) -> int:
        """Minimum number of cells a data row must have."""
        return max(self.columns.values()) + 1

    def check_header(self, labels: List[str]):
        """Raise ExtractionError if a header row contradicts the expected labels."""
        for name, expected in self.headers.items():
            position = self.columns[name]
            actual = labels[position] if position < len(labels) else None
            if actual != expected:
                raise ExtractionError(
                    f"Fixture table column {position} should be {expected!r} ({name}), found {actual!r}"
                )


DEFAULT_FIXTURE_SCHEMA = FixtureTableSchema(
    columns={
        "name": 0,
        "goals": 2,
        "assists": 3,
        "own_goals": 6,
        "penalties_saved": 7,
        "penalties_missed": 8,
        "yellow_cards": 9,
        "red_cards": 10,
        "saves": 11,
        "bps": 14,
    },
    headers={
        "goals": "GS",
        "assists": "A",
        "own_goals": "OG",
        "penalties_saved": "PS",
        "penalties_missed": "PM",
        "yellow_cards": "YC",
        "red_cards": "RC",
        "saves": "S",
        "bps": "BPS",
    },
)


def _row_cells(row: Tag) -> List[Tag]:
    return row.find_all(["td", "th"], recursive=False)


def _render(name: str, value: str, category: str) -> str:
    if category in UNVALUED_CATEGORIES:
        return name
    return f"{name} ({value})"


def parse_fixture(
    soup: BeautifulSoup,
    fixture_id: int,
    schema: FixtureTableSchema = DEFAULT_FIXTURE_SCHEMA,
) -> Fixture:
    """
    Build a Fixture from its detail page.

    Header rows (first cell a <th>) are dropped before any column predicate
    runs. Full-width ones are checked against the schema labels first;
    narrower ones (team or section labels) are dropped unchecked. A category lists every player
    whose cell for it is not "0"; bps lists every player, highest first,
    ties kept in table order.
    """
    title = soup.select_one("#ismFixtureDetailTitle")
    if title is None:
        raise ExtractionError(f"Fixture {fixture_id} page has no title")

    rows: List[List[str]] = []
    for row in soup.select(".ismFixtureDetailTable tr"):
        cells = _row_cells(row)
        if not cells:
            continue
        texts = [clean_text(cell.get_text()) for cell in cells]
        if cells[0].name == "th":
            # Only full-width rows are column headers; narrower ones are labels
            if len(texts) >= schema.width:
                schema.check_header(texts)
            continue
        if len(texts) < schema.width:
            raise ExtractionError(
                f"Fixture {fixture_id} row has {len(texts)} cells, expected at least {schema.width}"
            )
        rows.append(texts)

    name_col = schema.columns["name"]
    categories: Dict[str, List[str]] = {}
    for category in COUNTED_CATEGORIES:
        col = schema.columns[category]
        categories[category] = [
            _render(texts[name_col], texts[col], category)
            for texts in rows
            if texts[col] != "0"
        ]

    bps_col = schema.columns["bps"]
    ranked = sorted(rows, key=lambda texts: _leading_int(texts[bps_col]), reverse=True)
    categories["bps"] = [_render(texts[name_col], texts[bps_col], "bps") for texts in ranked]

    return Fixture(id=fixture_id, details=clean_text(title.get_text()), **categories)


def parse_element_scores(payload: Any, player_id: int) -> Tuple[int, List[List[Any]]]:
    """
    Points total and scoring breakdown from an elements payload.

    Raises ExtractionError when either is not in the expected shape, so a bad
    payload fails only the player it belongs to.
    """
    try:
        total_score = int(payload.get("event_points") or 0)
        details = normalize_details(payload.get("event_explain"))
    except (AttributeError, TypeError, ValueError) as e:
        raise ExtractionError(f"Player {player_id} payload is malformed: {e}") from e
    return total_score, details


def parse_global_player(
    payload: Dict[str, Any],
    player_id: int,
    week: int,
    fetched_at: datetime,
) -> GlobalPlayer:
    """Seed a GlobalPlayer from an elements payload; both timestamps are the fetch time."""
    total_score, details = parse_element_scores(payload, player_id)
    return GlobalPlayer(
        player_id=player_id,
        week=week,
        name=payload.get("web_name") or "",
        team=payload.get("team_name") or "",
        shirt=payload.get("shirt_image_url") or "",
        position=payload.get("type_name") or "",
        updated=fetched_at,
        last_change=fetched_at,
        total_score=total_score,
        details=details,
    )
