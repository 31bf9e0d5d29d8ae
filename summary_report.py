# summary_report.py
# Season top performers, plus a console wrapper that prints the summary written by analyze.py.
from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from stats import season_table

MIN_STRIKE_RATE_BALLS = 10
MIN_ECONOMY_OVERS = 2

def _pick(df: pd.DataFrame, mask, column: str, ascending: bool) -> dict | None:
    candidates = df[mask]
    if candidates.empty:
        return None
    row = candidates.sort_values([column, "name"], ascending=[ascending, True], kind="mergesort").iloc[0]
    return row.to_dict()

def top_performers(store, season: str, names: dict[str, str]) -> dict:
    bat = season_table("batting", store.season_aggregates("batting", season), names)
    bowl = season_table("bowling", store.season_aggregates("bowling", season), names)
    field = season_table("fielding", store.season_aggregates("fielding", season), names)

    return {
        "top_run_scorer": _pick(bat, bat["total_runs"] > 0, "total_runs", False),
        "best_average": _pick(bat, (bat["matches_played"] >= 1) & (bat["dismissals"] > 0), "average", False),
        "best_strike_rate": _pick(bat, bat["total_balls"] >= MIN_STRIKE_RATE_BALLS, "strike_rate", False),
        "top_wicket_taker": _pick(bowl, bowl["total_wickets"] > 0, "total_wickets", False),
        "best_bowling_average": _pick(bowl, (bowl["matches_bowled"] >= 1) & (bowl["total_wickets"] > 0), "average", True),
        "best_economy": _pick(bowl, bowl["total_overs"] >= MIN_ECONOMY_OVERS, "economy", True),
        "top_fielder": _pick(field, field["total_dismissals"] > 0, "total_dismissals", False),
    }

SUMMARY_LINES = [
    ("top_run_scorer", "Most runs", lambda r: f"{r['total_runs']} runs (avg {r['average']:.2f}, SR {r['strike_rate']:.2f})"),
    ("best_average", "Best average", lambda r: f"{r['average']:.2f} ({r['total_runs']} runs, {r['dismissals']} outs)"),
    ("best_strike_rate", "Best strike rate", lambda r: f"{r['strike_rate']:.2f} ({r['total_balls']} balls)"),
    ("top_wicket_taker", "Most wickets", lambda r: f"{r['total_wickets']} wkts (econ {r['economy']:.2f})"),
    ("best_bowling_average", "Best bowling avg", lambda r: f"{r['average']:.2f} ({r['total_wickets']} wkts)"),
    ("best_economy", "Best economy", lambda r: f"{r['economy']:.2f} ({r['total_overs']} overs)"),
    ("top_fielder", "Top fielder", lambda r: f"{r['total_dismissals']} dismissals ({r['total_catches']} ct)"),
]

def format_summary(store, names: dict[str, str], season: str | None = None) -> str:
    seasons = store.seasons()
    if not seasons:
        return "No matches imported.\n"
    season = season or seasons[-1]
    matches = [m for m in store.matches.values() if m.season == season]
    counts = {r: sum(1 for m in matches if m.result == r) for r in ("win", "loss", "tie", "no_result")}

    lines = [
        f"Season {season}: {len(matches)} match(es), "
        f"W{counts['win']} L{counts['loss']} T{counts['tie']} NR{counts['no_result']}",
        "",
    ]
    best = top_performers(store, season, names)
    for key, label, fmt in SUMMARY_LINES:
        row = best[key]
        lines.append(f"{label:<18} {row['name']}: {fmt(row)}" if row else f"{label:<18} -")
    return "\n".join(lines) + "\n"

def main(argv=None):
    ap = argparse.ArgumentParser(description="Print the summary written by analyze.py.")
    ap.add_argument("path", nargs="?", default="team_dashboard/summary.txt")
    args = ap.parse_args(argv)
    p = Path(args.path)
    print(p.read_text() if p.exists() else "No summary found. Run analyze.py first.")

if __name__ == "__main__":
    main()
