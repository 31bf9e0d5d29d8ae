"""
importer.py — persist a parsed scorecard as match + per-player performance rows.

MatchStore is the in-process store: matches, import history (by content hash),
performance rows keyed by (match_id, player_id) per kind, and season aggregates
keyed by (player_id, season). Every write path ends by recomputing the season
aggregates of the players it touched.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from threading import RLock

from dismissals import is_bowled_or_lbw
from models import (
    BattingPerformance,
    BowlingPerformance,
    FieldingPerformance,
    Match,
)
from name_resolver import NameResolver
from scorecard_parser import content_hash, overs_to_balls, parse_scorecard
from stats import batting_stats, bowling_stats, detect_season, fielding_stats

DEFAULT_TEAM = "UCLA"
KINDS = ("batting", "bowling", "fielding")

REDUCERS = {
    "batting": batting_stats,
    "bowling": bowling_stats,
    "fielding": fielding_stats,
}

# Fields an operator may correct after import.
EDITABLE_FIELDS = {
    "batting": {"runs", "balls", "fours", "sixes", "not_out", "dismissal_text"},
    "bowling": {"overs", "balls", "maidens", "runs_conceded", "wickets", "dots", "wides", "no_balls", "economy"},
    "fielding": {"catches", "run_outs", "stumpings"},
}
MATCH_EDITABLE_FIELDS = {
    "competition", "match_type", "venue", "result", "notes",
    "our_extras_total", "our_extras_wides", "our_extras_no_balls", "our_extras_byes", "our_extras_leg_byes",
}

# Reassignment target for a row nobody can identify; each one gets its own "Unclaimed #N" player.
UNCLAIMED = "unclaimed"
UNCLAIMED_RE = re.compile(r"^Unclaimed\s*#?\s*(\d+)?$", re.I)


class DuplicateImportError(Exception):
    def __init__(self, match_id: str, content_hash: str):
        super().__init__(f"scorecard already imported as match {match_id}")
        self.match_id = match_id
        self.content_hash = content_hash


class DuplicatePerformanceError(Exception):
    """Target player already holds a row of this kind in the match."""


@dataclass
class ImportRecord:
    match_id: str
    filename: str
    content_hash: str


@dataclass
class ImportSummary:
    match_id: str
    date: str
    season: str
    opponent: str
    result: str
    batting: list[str] = field(default_factory=list)
    bowling: list[str] = field(default_factory=list)
    fielding: list[str] = field(default_factory=list)

    def describe(self) -> str:
        return (f"{self.date} vs {self.opponent} ({self.result}): "
                f"{len(self.batting)} batting, {len(self.bowling)} bowling, {len(self.fielding)} fielding")


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise ValueError(f"unknown performance kind {kind!r}; expected one of {', '.join(KINDS)}")


class MatchStore:
    def __init__(self, season_start_month: int = 9):
        self.season_start_month = season_start_month
        self._lock = RLock()
        self.matches: dict[str, Match] = {}
        self.imports: dict[str, ImportRecord] = {}
        self.performances: dict[str, dict[tuple[str, str], object]] = {k: {} for k in KINDS}
        self.aggregates: dict[str, dict[tuple[str, str], object]] = {k: {} for k in KINDS}

    # ----- matches / history -----
    def find_import(self, content_hash: str) -> ImportRecord | None:
        with self._lock:
            return self.imports.get(content_hash)

    def add_match(self, match: Match, filename: str = "unknown.html") -> None:
        with self._lock:
            self.matches[match.id] = match
            if match.content_hash:
                self.imports[match.content_hash] = ImportRecord(match.id, filename, match.content_hash)

    def get_match(self, match_id: str) -> Match:
        with self._lock:
            if match_id not in self.matches:
                raise KeyError(f"match {match_id} not found")
            return self.matches[match_id]

    def put_match(self, match: Match) -> None:
        with self._lock:
            self.get_match(match.id)
            self.matches[match.id] = match

    def season_of(self, match_id: str) -> str:
        return self.get_match(match_id).season

    # ----- performance rows -----
    def get_performance(self, kind: str, match_id: str, player_id: str):
        _check_kind(kind)
        with self._lock:
            return self.performances[kind].get((match_id, player_id))

    def add_performance(self, kind: str, row) -> None:
        _check_kind(kind)
        key = (row.match_id, row.player_id)
        with self._lock:
            if key in self.performances[kind]:
                raise DuplicatePerformanceError(
                    f"player {row.player_id} already has a {kind} row in match {row.match_id}")
            self.performances[kind][key] = row

    def put_performance(self, kind: str, row) -> None:
        _check_kind(kind)
        with self._lock:
            self.performances[kind][(row.match_id, row.player_id)] = row

    def move_performance(self, kind: str, match_id: str, old_player_id: str, new_player_id: str):
        _check_kind(kind)
        rows = self.performances[kind]
        with self._lock:
            row = rows.get((match_id, old_player_id))
            if row is None:
                raise KeyError(f"no {kind} row for player {old_player_id} in match {match_id}")
            if old_player_id == new_player_id:
                return row
            if (match_id, new_player_id) in rows:
                raise DuplicatePerformanceError(
                    f"player {new_player_id} already has a {kind} row in match {match_id}; merge or edit instead")
            moved = replace(rows.pop((match_id, old_player_id)), player_id=new_player_id)
            rows[(match_id, new_player_id)] = moved
            return moved

    def performances_for(self, kind: str, player_id: str, season: str) -> list:
        _check_kind(kind)
        with self._lock:
            return [
                row for (mid, pid), row in self.performances[kind].items()
                if pid == player_id and self.matches[mid].season == season
            ]

    def match_performances(self, kind: str, match_id: str) -> list:
        _check_kind(kind)
        with self._lock:
            return [row for (mid, _), row in self.performances[kind].items() if mid == match_id]

    # ----- aggregates -----
    def recompute(self, kind: str, player_id: str, season: str):
        """Rebuild one (player, season) aggregate from the current rows; no rows drops it."""
        with self._lock:
            rows = self.performances_for(kind, player_id, season)
            key = (player_id, season)
            if not rows:
                self.aggregates[kind].pop(key, None)
                return None
            agg = REDUCERS[kind](rows)
            self.aggregates[kind][key] = agg
            return agg

    def season_aggregates(self, kind: str, season: str) -> dict:
        _check_kind(kind)
        with self._lock:
            return {pid: agg for (pid, s), agg in self.aggregates[kind].items() if s == season}

    def seasons(self) -> list[str]:
        with self._lock:
            return sorted({m.season for m in self.matches.values()})

    def remove_match(self, match_id: str) -> dict[str, set[str]]:
        """Drop the match, its import record and its rows; return affected player ids per kind."""
        with self._lock:
            self.get_match(match_id)
            affected = {k: set() for k in KINDS}
            for kind in KINDS:
                for key in [k for k in self.performances[kind] if k[0] == match_id]:
                    self.performances[kind].pop(key)
                    affected[kind].add(key[1])
            for h in [h for h, rec in self.imports.items() if rec.match_id == match_id]:
                self.imports.pop(h)
            self.matches.pop(match_id)
            return affected


# ----------------------
# Import
# ----------------------
def _resolve_or_create(resolver: NameResolver, name: str, match_id: str) -> str:
    found = resolver.resolve(name, match_id)
    return found.player_id if found else resolver.create_if_not_exists(name)

def _pick_innings(innings, our_team: str):
    ours_key = our_team.lower()
    ours = next((i for i in innings if ours_key in i.team.lower()), None)
    theirs = next((i for i in innings if ours_key not in i.team.lower()), None)
    if ours is None and len(innings) >= 2:
        ours, theirs = innings[1], innings[0]
    return ours, theirs

def _result_from_totals(ours, theirs) -> str:
    if ours is None or theirs is None:
        return "no_result"
    if ours.total > theirs.total:
        return "win"
    if ours.total < theirs.total:
        return "loss"
    return "tie"

def import_scorecard(html: str, store: MatchStore, resolver: NameResolver,
                     metadata: dict | None = None, force: bool = False) -> ImportSummary:
    """Parse one scorecard and write its rows for our team.

    Raises DuplicateImportError if the same page was imported before, unless
    `force` is set, in which case the earlier match is deleted first.
    """
    metadata = metadata or {}
    fingerprint = content_hash(html)
    previous = store.find_import(fingerprint)
    if previous is not None:
        if not force:
            raise DuplicateImportError(previous.match_id, fingerprint)
        delete_match(store, previous.match_id)

    our_team = metadata.get("our_team_name") or DEFAULT_TEAM
    parsed = parse_scorecard(html, our_team=our_team)
    season = detect_season(parsed.date, store.season_start_month)

    ours, theirs = _pick_innings(parsed.innings, our_team)
    opponent = (theirs.team if theirs else None) or next(
        (t for t in parsed.teams if our_team.lower() not in t.lower()), "Unknown")
    result = parsed.result or _result_from_totals(ours, theirs)

    extras = ours.extras_breakdown if ours else None
    match = Match(
        id=str(uuid.uuid4()),
        season=season,
        date=parsed.date,
        opponent=opponent,
        match_type=metadata.get("match_type") or parsed.match_type or "league",
        result=result,
        venue=metadata.get("venue") or parsed.venue,
        competition=metadata.get("competition") or parsed.competition,
        our_team_name=our_team,
        our_score=f"{ours.total}/{ours.wickets}" if ours else None,
        opponent_score=f"{theirs.total}/{theirs.wickets}" if theirs else None,
        our_extras_total=(extras.total or ours.extras) if ours else 0,
        our_extras_wides=extras.wides if extras else 0,
        our_extras_no_balls=extras.no_balls if extras else 0,
        our_extras_byes=extras.byes if extras else 0,
        our_extras_leg_byes=extras.leg_byes if extras else 0,
        notes=metadata.get("notes"),
        content_hash=fingerprint,
    )
    store.add_match(match, metadata.get("filename") or "unknown.html")
    summary = ImportSummary(match.id, match.date, season, opponent, result)

    for entry in (ours.batting if ours else []):
        player_id = _resolve_or_create(resolver, entry.player_name, match.id)
        try:
            store.add_performance("batting", BattingPerformance(
                match_id=match.id,
                player_id=player_id,
                runs=entry.runs,
                balls=entry.balls,
                fours=entry.fours,
                sixes=entry.sixes,
                not_out=entry.not_out,
                bowled_lbw=entry.bowled_lbw,
                dismissal_text=entry.dismissal_text,
                batting_position=entry.batting_position,
            ))
        except DuplicatePerformanceError:
            print(f"[warn] {entry.player_name!r} resolves to a player already batting in this match; skipped.")
            continue
        summary.batting.append(player_id)

    # Our bowlers appear under the opponent's innings; some layouts only carry them under ours.
    bowling = (theirs.bowling if theirs and theirs.bowling else None) or (ours.bowling if ours else [])
    for entry in bowling:
        player_id = _resolve_or_create(resolver, entry.player_name, match.id)
        try:
            store.add_performance("bowling", BowlingPerformance(
                match_id=match.id,
                player_id=player_id,
                overs=entry.overs,
                balls=entry.balls,
                maidens=entry.maidens,
                runs_conceded=entry.runs,
                wickets=entry.wickets,
                dots=entry.dots,
                wides=entry.wides,
                no_balls=entry.no_balls,
                economy=entry.economy,
            ))
        except DuplicatePerformanceError:
            print(f"[warn] {entry.player_name!r} resolves to a player already bowling in this match; skipped.")
            continue
        summary.bowling.append(player_id)

    for entry in (theirs.fielding if theirs else []):
        player_id = _resolve_or_create(resolver, entry.player_name, match.id)
        existing = store.get_performance("fielding", match.id, player_id)
        if existing is not None:
            store.put_performance("fielding", replace(
                existing,
                catches=existing.catches + entry.catches,
                run_outs=existing.run_outs + entry.run_outs,
                stumpings=existing.stumpings + entry.stumpings,
            ))
        else:
            store.add_performance("fielding", FieldingPerformance(
                match_id=match.id,
                player_id=player_id,
                catches=entry.catches,
                run_outs=entry.run_outs,
                stumpings=entry.stumpings,
            ))
        summary.fielding.append(player_id)

    for kind in KINDS:
        touched = list(dict.fromkeys(getattr(summary, kind)))
        setattr(summary, kind, touched)
        for player_id in touched:
            store.recompute(kind, player_id, season)
    return summary


# ----------------------
# Edits
# ----------------------
def update_performance(store: MatchStore, kind: str, match_id: str, player_id: str, updates: dict):
    """Apply operator corrections to one row; unknown fields are ignored."""
    _check_kind(kind)
    safe = {k: v for k, v in (updates or {}).items() if k in EDITABLE_FIELDS[kind]}
    if not safe:
        raise ValueError(f"no editable {kind} fields in {sorted(updates or {})}")
    row = store.get_performance(kind, match_id, player_id)
    if row is None:
        raise KeyError(f"no {kind} row for player {player_id} in match {match_id}")
    if kind == "batting" and "dismissal_text" in safe:
        safe["bowled_lbw"] = is_bowled_or_lbw(safe["dismissal_text"])
    if kind == "bowling" and "overs" in safe:
        overs = float(safe["overs"] or 0)
        safe.setdefault("balls", overs_to_balls(safe["overs"]))
        if "economy" not in safe:
            runs = safe.get("runs_conceded", row.runs_conceded)
            safe["economy"] = runs / overs if overs > 0 else 0.0
    row = replace(row, **safe)
    store.put_performance(kind, row)
    store.recompute(kind, player_id, store.season_of(match_id))
    return row

def update_match(store: MatchStore, match_id: str, updates: dict) -> Match:
    """Correct match metadata (competition, venue, result, our extras...); other fields are ignored."""
    safe = {k: v for k, v in (updates or {}).items() if k in MATCH_EDITABLE_FIELDS}
    if not safe:
        raise ValueError(f"no editable match fields in {sorted(updates or {})}")
    match = replace(store.get_match(match_id), **safe)
    store.put_match(match)
    return match

def unclaimed_player(store: MatchStore, resolver: NameResolver, kind: str, match_id: str) -> str:
    """First "Unclaimed #N" player without a `kind` row in the match, created when all are taken."""
    used = {row.player_id for row in store.match_performances(kind, match_id)}
    numbered = []
    for p in resolver.directory.list_players():
        m = UNCLAIMED_RE.match(p.name)
        if m:
            numbered.append((int(m.group(1) or 1), p.id))
    numbered.sort()
    for _, player_id in numbered:
        if player_id not in used:
            return player_id
    next_number = numbered[-1][0] + 1 if numbered else 1
    player = resolver.directory.insert_player(f"Unclaimed #{next_number}")
    resolver.cache.invalidate()
    return player.id

def reassign_performance(store: MatchStore, kind: str, match_id: str, old_player_id: str, new_player_id: str,
                         resolver: NameResolver | None = None):
    """Move a row to another player; refuses if that player already has one in the match.

    `new_player_id` may be UNCLAIMED, which needs `resolver` to find or create the placeholder.
    """
    if new_player_id == UNCLAIMED:
        if resolver is None:
            raise ValueError("reassigning to an unclaimed player needs a resolver")
        if store.get_performance(kind, match_id, old_player_id) is None:
            raise KeyError(f"no {kind} row for player {old_player_id} in match {match_id}")
        new_player_id = unclaimed_player(store, resolver, kind, match_id)
    moved = store.move_performance(kind, match_id, old_player_id, new_player_id)
    if old_player_id != new_player_id:
        season = store.season_of(match_id)
        store.recompute(kind, old_player_id, season)
        store.recompute(kind, new_player_id, season)
    return moved

def delete_match(store: MatchStore, match_id: str) -> dict[str, int]:
    season = store.season_of(match_id)
    affected = store.remove_match(match_id)
    for kind, players in affected.items():
        for player_id in players:
            store.recompute(kind, player_id, season)
    return {kind: len(players) for kind, players in affected.items()}
