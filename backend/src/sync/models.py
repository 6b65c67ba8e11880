"""
Domain records for rounds, rosters, fixtures and per-week player scores.

Teams and fixtures are embedded in their round and persisted as JSON columns;
global players are one row per (player_id, week).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

FIXTURE_CATEGORIES = (
    "goals",
    "assists",
    "bps",
    "yellow_cards",
    "red_cards",
    "saves",
    "penalties_saved",
    "penalties_missed",
    "own_goals",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def normalize_details(details: Any) -> List[List[Any]]:
    """Coerce a scoring-event sequence to a list of lists (the JSON shape)."""
    if not details:
        return []
    return [list(event) for event in details]


@dataclass
class RosterPlayer:
    """One of the fifteen slots a fantasy team fielded for a round."""

    player_id: int
    captain: bool = False
    vice_captain: bool = False

    def to_row(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "captain": self.captain,
            "vice_captain": self.vice_captain,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RosterPlayer":
        return cls(
            player_id=int(row["player_id"]),
            captain=bool(row.get("captain", False)),
            vice_captain=bool(row.get("vice_captain", False)),
        )


@dataclass
class Team:
    """A competing fantasy team; identity is fixed, deduction and roster are rewritten each sync."""

    team_id: int
    name: str
    deduction: int = 0
    players: List[RosterPlayer] = field(default_factory=list)

    @property
    def captain(self) -> Optional[RosterPlayer]:
        return next((p for p in self.players if p.captain), None)

    def to_row(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "deduction": self.deduction,
            "players": [p.to_row() for p in self.players],
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Team":
        return cls(
            team_id=int(row["team_id"]),
            name=row.get("name", ""),
            deduction=int(row.get("deduction") or 0),
            players=[RosterPlayer.from_row(p) for p in row.get("players") or []],
        )


@dataclass
class Fixture:
    """A real-world match with its categorized "player (value)" event lists."""

    id: int
    details: str = ""
    goals: List[str] = field(default_factory=list)
    assists: List[str] = field(default_factory=list)
    bps: List[str] = field(default_factory=list)
    yellow_cards: List[str] = field(default_factory=list)
    red_cards: List[str] = field(default_factory=list)
    saves: List[str] = field(default_factory=list)
    penalties_saved: List[str] = field(default_factory=list)
    penalties_missed: List[str] = field(default_factory=list)
    own_goals: List[str] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"id": self.id, "details": self.details}
        for category in FIXTURE_CATEGORIES:
            row[category] = list(getattr(self, category))
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Fixture":
        kwargs = {category: list(row.get(category) or []) for category in FIXTURE_CATEGORIES}
        return cls(id=int(row["id"]), details=row.get("details") or "", **kwargs)


@dataclass
class Round:
    """Snapshot state of one competition week."""

    week: int
    teams: List[Team] = field(default_factory=list)
    fixtures: List[Fixture] = field(default_factory=list)

    def team(self, team_id: int) -> Optional[Team]:
        return next((t for t in self.teams if t.team_id == team_id), None)

    def to_row(self) -> Dict[str, Any]:
        return {
            "week": self.week,
            "teams": [t.to_row() for t in self.teams],
            "fixtures": [f.to_row() for f in self.fixtures],
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Round":
        return cls(
            week=int(row["week"]),
            teams=[Team.from_row(t) for t in row.get("teams") or []],
            fixtures=[Fixture.from_row(f) for f in row.get("fixtures") or []],
        )


@dataclass
class GlobalPlayer:
    """
    Per-player, per-week score tracking record.

    `updated` moves on every fetch that produced a diff; `last_change` only
    when a scoring value actually changed.
    """

    player_id: int
    week: int
    name: str = ""
    team: str = ""
    shirt: str = ""
    position: str = ""
    updated: Optional[datetime] = None
    last_change: Optional[datetime] = None
    total_score: int = 0
    details: List[List[Any]] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "week": self.week,
            "name": self.name,
            "team": self.team,
            "shirt": self.shirt,
            "position": self.position,
            "updated": _format_timestamp(self.updated),
            "last_change": _format_timestamp(self.last_change),
            "total_score": self.total_score,
            "details": normalize_details(self.details),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "GlobalPlayer":
        return cls(
            player_id=int(row["player_id"]),
            week=int(row["week"]),
            name=row.get("name") or "",
            team=row.get("team") or "",
            shirt=row.get("shirt") or "",
            position=row.get("position") or "",
            updated=_parse_timestamp(row.get("updated")),
            last_change=_parse_timestamp(row.get("last_change")),
            total_score=int(row.get("total_score") or 0),
            details=normalize_details(row.get("details")),
        )
