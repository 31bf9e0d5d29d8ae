#!/usr/bin/env python3
"""
analyze.py — import saved CricClubs scorecard pages and write season stats.

Flow:
- Load config.yaml (team name, roster CSV, scorecard folder, output folder).
- Seed the player directory from the roster CSV (canonical name, aliases...).
- Parse every *.html scorecard in parallel; copies of the same match (same date
  and teams) collapse to the copy with the most batting rows.
- Import sequentially so name resolution never races player creation.
- Write batting/bowling/fielding season tables, match_results.json and summary.txt.

Env:
- MAX_PARSE_WORKERS  parser threads (default 4)
- FORCE_REFRESH=1    re-import pages whose fingerprint was already imported
"""

from __future__ import annotations

import argparse
import json
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from threading import Lock

import pandas as pd
import yaml

from importer import DuplicateImportError, MatchStore, import_scorecard
from name_resolver import InMemoryDirectory, NameResolver
from scorecard_parser import ScorecardParseError, group_by_match, merge_parsed_matches, parse_scorecard
from stats import season_table
from summary_report import format_summary

MAX_PARSE_WORKERS = int(os.environ.get("MAX_PARSE_WORKERS", "4"))
FORCE_REFRESH = os.environ.get("FORCE_REFRESH", "0") != "0"
print_lock = Lock()

DEFAULT_CONFIG = {
    "team_name": "UCLA",
    "players_csv": None,
    "scorecards_dir": "scorecards",
    "output_dir": "team_dashboard",
    "season_start_month": 9,
}

def load_config(path: Path | None = None) -> dict:
    path = path or Path("config.yaml")
    cfg = dict(DEFAULT_CONFIG)
    if not path.exists():
        return cfg
    try:
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("Config root must be a mapping.")
    except Exception as exc:
        raise SystemExit(f"Failed to load config from {path}: {exc}")
    cfg.update({k: v for k, v in data.items() if v is not None})
    try:
        cfg["season_start_month"] = int(cfg["season_start_month"])
    except (TypeError, ValueError):
        raise SystemExit(f"season_start_month must be a month number, got {cfg['season_start_month']!r}")
    if not 1 <= cfg["season_start_month"] <= 12:
        raise SystemExit(f"season_start_month must be 1-12, got {cfg['season_start_month']}")
    return cfg

def discover_scorecards(base: Path) -> list[Path]:
    if not base.exists():
        return []
    return sorted(p for p in base.rglob("*") if p.suffix.lower() in {".html", ".htm"} and p.is_file())

def read_scorecard(path: Path, team_name: str):
    """Worker: read and parse one page. Returns (path, html, parsed) or None."""
    try:
        html = path.read_text(encoding="utf-8", errors="replace")
        parsed = parse_scorecard(html, our_team=team_name)
    except (OSError, ScorecardParseError) as exc:
        with print_lock:
            print(f"[warn] skipping {path}: {exc}")
        return None
    with print_lock:
        print(f"[info] parsed {path.name}: {parsed.date} {' vs '.join(parsed.teams)} "
              f"({parsed.batting_count()} batting rows)")
    return path, html, parsed

def parse_all(paths: list[Path], team_name: str) -> list[tuple[Path, str, object]]:
    results = []
    with ThreadPoolExecutor(max_workers=MAX_PARSE_WORKERS) as executor:
        futures = {executor.submit(read_scorecard, p, team_name): p for p in paths}
        for future in as_completed(futures):
            result = future.result()
            if result:
                results.append(result)
    results.sort(key=lambda r: str(r[0]))
    return results

def pick_match_copies(results: list[tuple[Path, str, object]]) -> list[tuple[Path, str, object]]:
    """One entry per match; extra copies are dropped with an [info] line."""
    by_parsed = {id(parsed): (path, html, parsed) for path, html, parsed in results}
    chosen = []
    for key, copies in group_by_match([r[2] for r in results]).items():
        best = merge_parsed_matches(copies)
        chosen.append(by_parsed[id(best)])
        if len(copies) > 1:
            print(f"[info] {key}: {len(copies)} copies, using {by_parsed[id(best)][0].name}")
    chosen.sort(key=lambda r: (r[2].date, str(r[0])))
    return chosen

def build_match_results(store: MatchStore) -> list:
    """Match list for the dashboard, most recent first."""
    match_data = []
    for m in store.matches.values():
        match_data.append({
            "match_id": m.id,
            "match_date": m.date,
            "season": m.season,
            "opponent": m.opponent,
            "result": m.result,
            "ground": m.venue,
            "series": m.competition,
            "match_type": m.match_type,
            "our_score": m.our_score,
            "opponent_score": m.opponent_score,
            "extras": {
                "total": m.our_extras_total,
                "wides": m.our_extras_wides,
                "no_balls": m.our_extras_no_balls,
                "byes": m.our_extras_byes,
                "leg_byes": m.our_extras_leg_byes,
            },
        })

    def sort_key(m):
        try:
            return datetime.strptime(m.get("match_date") or "", "%Y-%m-%d")
        except ValueError:
            return datetime.min

    match_data.sort(key=sort_key, reverse=True)
    return match_data

def stats_frame(store: MatchStore, kind: str, names: dict[str, str]) -> pd.DataFrame:
    """All seasons stacked, newest season first, leaderboard order inside each."""
    frames = []
    for season in reversed(store.seasons()):
        df = season_table(kind, store.season_aggregates(kind, season), names)
        if not df.empty:
            df.insert(0, "season", season)
            frames.append(df)
    if not frames:
        return pd.DataFrame(columns=["season", "player_id", "name"])
    return pd.concat(frames, ignore_index=True)

def main(argv=None):
    ap = argparse.ArgumentParser(description="Import CricClubs scorecards and build season stats.")
    ap.add_argument("--config", type=Path, help="Path to config.yaml (default: ./config.yaml).")
    ap.add_argument(
        "--file",
        action="append",
        help="Scorecard HTML file (repeatable; defaults to every page under scorecards_dir).",
    )
    ap.add_argument("--out", type=Path, help="Output directory (overrides output_dir).")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    base_dir = (args.config.parent if args.config else Path.cwd()).resolve()
    team_name = str(cfg["team_name"]).strip()

    directory = InMemoryDirectory.from_roster_csv(cfg.get("players_csv"), base_dir)
    resolver = NameResolver(directory)
    store = MatchStore(season_start_month=cfg["season_start_month"])

    if args.file:
        paths = [Path(p) for p in args.file]
    else:
        scorecards_dir = Path(cfg["scorecards_dir"])
        if not scorecards_dir.is_absolute():
            scorecards_dir = base_dir / scorecards_dir
        paths = discover_scorecards(scorecards_dir)
    if not paths:
        raise SystemExit("No scorecard pages found. Save CricClubs scorecards as .html into scorecards_dir.")

    parsed = parse_all(paths, team_name)
    if not parsed:
        raise SystemExit("[error] none of the scorecard pages could be parsed.")

    imported = 0
    for path, html, _ in pick_match_copies(parsed):
        try:
            summary = import_scorecard(
                html, store, resolver,
                metadata={"our_team_name": team_name, "filename": path.name},
                force=FORCE_REFRESH,
            )
        except DuplicateImportError as exc:
            print(f"[warn] {path.name}: {exc}; skipped.")
            continue
        imported += 1
        print(f"[info] imported {path.name}: {summary.describe()}")

    out_dir = args.out or Path(cfg["output_dir"])
    if not out_dir.is_absolute() and not args.out:
        out_dir = base_dir / out_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    names = {p.id: p.name for p in directory.list_players()}
    for kind in ("batting", "bowling", "fielding"):
        stats_frame(store, kind, names).to_csv(out_dir / f"{kind}_stats.csv", index=False)
    match_results = build_match_results(store)
    (out_dir / "match_results.json").write_text(json.dumps(match_results, indent=2), encoding="utf-8")
    (out_dir / "summary.txt").write_text(format_summary(store, names), encoding="utf-8")

    print(f"[ok] imported {imported} match(es); wrote stats to {out_dir}")

if __name__ == "__main__":
    main()
