# models.py
# Records passed between the scorecard parser, the name resolver, the importer
# and the season reducers.
from __future__ import annotations

from dataclasses import dataclass, field


# -----------------------------
# Parsed scorecard
# -----------------------------
@dataclass
class BattingEntry:
    player_name: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    not_out: bool = False
    dismissal_text: str = ""
    batting_position: int = 0
    bowled_lbw: bool = False


@dataclass
class BowlingEntry:
    player_name: str
    overs: float = 0.0
    balls: int = 0  # legal balls
    maidens: int = 0
    runs: int = 0
    wickets: int = 0
    dots: int = 0
    wides: int = 0
    no_balls: int = 0
    economy: float = 0.0


@dataclass
class FieldingEntry:
    player_name: str
    catches: int = 0
    run_outs: int = 0
    stumpings: int = 0

    @property
    def dismissals(self) -> int:
        return self.catches + self.run_outs + self.stumpings


@dataclass
class ExtrasBreakdown:
    total: int = 0
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0


@dataclass
class Innings:
    team: str
    batting: list[BattingEntry] = field(default_factory=list)
    bowling: list[BowlingEntry] = field(default_factory=list)
    fielding: list[FieldingEntry] = field(default_factory=list)
    total: int = 0
    wickets: int = 0
    overs: float = 0.0
    extras: int = 0
    extras_breakdown: ExtrasBreakdown = field(default_factory=ExtrasBreakdown)


@dataclass
class ParsedMatchData:
    date: str
    teams: tuple[str, str]
    venue: str | None = None
    competition: str | None = None
    match_type: str | None = None  # league, playoff, friendly, tournament
    result: str | None = None  # win, loss, tie, no_result
    innings: list[Innings] = field(default_factory=list)
    result_margin: str | None = None
    toss_winner: str | None = None
    player_of_match: str | None = None
    stage: str | None = None  # "Semi Final", "Round 3"
    date_found: bool = True  # False when `date` fell back to today

    def batting_count(self) -> int:
        return sum(len(inn.batting) for inn in self.innings)


# -----------------------------
# Player directory
# -----------------------------
@dataclass(frozen=True)
class Player:
    id: str
    name: str  # canonical


@dataclass(frozen=True)
class PlayerAlias:
    player_id: str
    alias: str


@dataclass(frozen=True)
class MatchPlayerOverride:
    match_id: str
    displayed_name: str
    player_id: str
    notes: str | None = None


@dataclass(frozen=True)
class ResolvedPlayer:
    player_id: str
    canonical_name: str


# -----------------------------
# Stored rows
# -----------------------------
@dataclass
class Match:
    id: str
    season: str
    date: str
    opponent: str
    match_type: str = "league"
    result: str = "no_result"
    venue: str | None = None
    competition: str | None = None
    our_team_name: str | None = None
    our_score: str | None = None
    opponent_score: str | None = None
    our_extras_total: int = 0
    our_extras_wides: int = 0
    our_extras_no_balls: int = 0
    our_extras_byes: int = 0
    our_extras_leg_byes: int = 0
    notes: str | None = None
    content_hash: str | None = None


@dataclass
class BattingPerformance:
    match_id: str
    player_id: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    not_out: bool = False
    bowled_lbw: bool = False
    dismissal_text: str = ""
    batting_position: int = 0


@dataclass
class BowlingPerformance:
    match_id: str
    player_id: str
    overs: float = 0.0
    balls: int = 0
    maidens: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    dots: int = 0
    wides: int = 0
    no_balls: int = 0
    economy: float = 0.0


@dataclass
class FieldingPerformance:
    match_id: str
    player_id: str
    catches: int = 0
    run_outs: int = 0
    stumpings: int = 0


# -----------------------------
# Season aggregates
# -----------------------------
@dataclass(frozen=True)
class BattingSeasonStats:
    matches_played: int = 0
    total_runs: int = 0
    total_balls: int = 0
    dismissals: int = 0
    not_outs: int = 0
    fours: int = 0
    sixes: int = 0
    bowled_lbw: int = 0
    average: float = 0.0
    strike_rate: float = 0.0
    boundary_rate: float = 0.0  # balls per boundary
    boundary_percentage: float = 0.0
    bowled_lbw_percentage: float = 0.0


@dataclass(frozen=True)
class BowlingSeasonStats:
    matches_bowled: int = 0
    total_overs: float = 0.0
    total_balls: int = 0
    total_runs: int = 0
    total_wickets: int = 0
    total_maidens: int = 0
    total_dots: int = 0
    total_wides: int = 0
    total_no_balls: int = 0
    average: float = 0.0  # runs per wicket
    strike_rate: float = 0.0  # balls per wicket
    economy: float = 0.0  # runs per over
    dot_percentage: float = 0.0


@dataclass(frozen=True)
class FieldingSeasonStats:
    matches_played: int = 0
    total_catches: int = 0
    total_run_outs: int = 0
    total_stumpings: int = 0
    total_dismissals: int = 0
    dismissals_per_match: float = 0.0
