# stats.py
# Season reducers over one player's performance rows. Pure: same rows in, same
# aggregate out; every zero denominator yields 0.0.
from __future__ import annotations

from dataclasses import asdict, fields
from typing import Iterable

import pandas as pd

from models import (
    BattingPerformance,
    BattingSeasonStats,
    BowlingPerformance,
    BowlingSeasonStats,
    FieldingPerformance,
    FieldingSeasonStats,
)

def _ratio(num, den, scale: float = 1.0) -> float:
    return round(float(num) / float(den) * scale, 2) if den and den > 0 else 0.0

def _frame(rows: Iterable) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in rows])


def batting_stats(rows: Iterable[BattingPerformance]) -> BattingSeasonStats:
    df = _frame(rows)
    if df.empty:
        return BattingSeasonStats()

    dismissed = ~df["not_out"].astype(bool)
    runs = int(df["runs"].sum())
    balls = int(df["balls"].sum())
    fours = int(df["fours"].sum())
    sixes = int(df["sixes"].sum())
    outs = int(dismissed.sum())
    bowled_lbw = int((df["bowled_lbw"].astype(bool) & dismissed).sum())
    boundaries = fours + sixes

    return BattingSeasonStats(
        matches_played=int(df["match_id"].nunique()),
        total_runs=runs,
        total_balls=balls,
        dismissals=outs,
        not_outs=len(df) - outs,
        fours=fours,
        sixes=sixes,
        bowled_lbw=bowled_lbw,
        average=_ratio(runs, outs),
        strike_rate=_ratio(runs, balls, 100),
        boundary_rate=_ratio(balls, boundaries),
        boundary_percentage=_ratio(boundaries, balls, 100),
        bowled_lbw_percentage=_ratio(bowled_lbw, outs, 100),
    )


def bowling_stats(rows: Iterable[BowlingPerformance]) -> BowlingSeasonStats:
    df = _frame(rows)
    if df.empty:
        return BowlingSeasonStats()

    sums = df[["overs", "balls", "runs_conceded", "wickets", "maidens", "dots", "wides", "no_balls"]].sum()
    overs = float(sums["overs"])  # decimal notation summed as-is, e.g. 4.2 + 3.0
    balls = int(sums["balls"])
    runs = int(sums["runs_conceded"])
    wickets = int(sums["wickets"])

    return BowlingSeasonStats(
        matches_bowled=int(df["match_id"].nunique()),
        total_overs=round(overs, 1),
        total_balls=balls,
        total_runs=runs,
        total_wickets=wickets,
        total_maidens=int(sums["maidens"]),
        total_dots=int(sums["dots"]),
        total_wides=int(sums["wides"]),
        total_no_balls=int(sums["no_balls"]),
        average=_ratio(runs, wickets),
        strike_rate=_ratio(balls, wickets),
        economy=_ratio(runs, overs),
        dot_percentage=_ratio(sums["dots"], balls, 100),
    )


def fielding_stats(rows: Iterable[FieldingPerformance]) -> FieldingSeasonStats:
    df = _frame(rows)
    if df.empty:
        return FieldingSeasonStats()

    catches = int(df["catches"].sum())
    run_outs = int(df["run_outs"].sum())
    stumpings = int(df["stumpings"].sum())
    matches = int(df["match_id"].nunique())
    total = catches + run_outs + stumpings

    return FieldingSeasonStats(
        matches_played=matches,
        total_catches=catches,
        total_run_outs=run_outs,
        total_stumpings=stumpings,
        total_dismissals=total,
        dismissals_per_match=_ratio(total, matches),
    )


def detect_season(match_date, start_month: int = 9) -> str:
    """'2025-10-18' -> '2025-2026'; '2026-03-01' -> '2025-2026' (season starts in September)."""
    ts = pd.Timestamp(match_date)
    start = ts.year if ts.month >= start_month else ts.year - 1
    return f"{start}-{start + 1}"


# Leaderboard order per kind: (columns, ascending)
SEASON_TABLE_ORDER = {
    "batting": (["total_runs", "average"], [False, False]),
    "bowling": (["total_wickets", "economy"], [False, True]),
    "fielding": (["total_dismissals", "total_catches"], [False, False]),
}
STATS_TYPES = {
    "batting": BattingSeasonStats,
    "bowling": BowlingSeasonStats,
    "fielding": FieldingSeasonStats,
}

def season_table(kind: str, aggregates: dict, names: dict[str, str] | None = None) -> pd.DataFrame:
    """One row per player, leaderboard order. `aggregates` maps player_id -> *SeasonStats."""
    if kind not in SEASON_TABLE_ORDER:
        raise ValueError(f"unknown stats kind {kind!r}; expected one of {sorted(SEASON_TABLE_ORDER)}")
    names = names or {}
    columns = ["player_id", "name"] + [f.name for f in fields(STATS_TYPES[kind])]
    records = [
        {"player_id": pid, "name": names.get(pid, pid), **asdict(agg)}
        for pid, agg in aggregates.items()
    ]
    df = pd.DataFrame(records, columns=columns)
    if df.empty:
        return df
    by, ascending = SEASON_TABLE_ORDER[kind]
    return df.sort_values(by + ["name"], ascending=ascending + [True], kind="mergesort").reset_index(drop=True)
