"""
dismissals.py: read a batter's "how out" text.

Two independent answers come out of one dismissal string:
  * a classification (bowled / lbw / caught / ...), used for the bowled-or-LBW
    flag on the batting row;
  * at most one fielding credit (catch, stumping or run out) for a named fielder.

Examples seen on CricClubs scorecards:
  "b Tanmay D", "lbw b Arvind", "c Naman S b Tanmay D", "c & b Kabir",
  "c sub (Rafid) b Joy", "st †Sahil b Arvind", "run out (Kabir)", "not out".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from models import FieldingEntry

def norm(s): return re.sub(r"\s+", " ", (str(s) if s is not None else "").strip())
def lower(s): return norm(s).lower()

CATCH = "catch"
RUN_OUT = "run_out"
STUMPING = "stumping"

# Leading markers in front of a fielder's name: substitute, keeper, keeper glyph.
_FIELDER_MARKERS = re.compile(r"^(?:sub\b|wk\b|†)\s*", re.I)

_CAUGHT_AND_BOWLED = re.compile(r"^c\s*(?:&|and)\s*b\s+(.+)$", re.I)
_CAUGHT = re.compile(r"^c\s+(.+?)(?:\s+b\s+|$)", re.I)
_STUMPED = re.compile(r"^st\s+(.+?)\s+b\s+", re.I)
_RUN_OUT = re.compile(r"run\s*out\b\s*(?:\(([^)]*)\))?", re.I)


@dataclass(frozen=True)
class FieldingCredit:
    kind: str  # catch, run_out, stumping
    fielder: str


@dataclass(frozen=True)
class Dismissal:
    kind: str
    bowled_lbw: bool
    credit: FieldingCredit | None = None


def clean_fielder_name(name: str) -> str:
    """Strip parentheses and sub/wk/† markers; '' means no usable name."""
    s = norm(re.sub(r"[()]", " ", name or ""))
    prev = None
    while s and s != prev:
        prev = s
        s = _FIELDER_MARKERS.sub("", s).strip()
    s = s.rstrip("*†").strip()
    if s.lower() == "sub":
        return ""
    return s

def is_bowled_or_lbw(text: str) -> bool:
    x = lower(text)
    return x.startswith("b ") or x == "bowled" or "lbw" in x

def dismissal_kind(text: str) -> str:
    x = lower(text)
    if not x:
        return "other"
    if x.startswith("not out"): return "not out"
    if re.match(r"c\s*(?:&|and)\s*b\b", x) or x.startswith("c "): return "caught"
    if x.startswith("st "): return "stumped"
    if "run out" in x: return "run out"
    if "lbw" in x: return "lbw"
    if x.startswith("b ") or x == "bowled": return "bowled"
    if x.startswith("retired"): return "retired"
    return "other"


# Matchers are tried in order; the first one that recognises the text decides
# the credit, so one dismissal never credits two fielders.
def _match_caught_and_bowled(text: str):
    m = _CAUGHT_AND_BOWLED.match(text)
    return (CATCH, m.group(1)) if m else None

def _match_caught(text: str):
    m = _CAUGHT.match(text)
    return (CATCH, m.group(1)) if m else None

def _match_stumped(text: str):
    m = _STUMPED.match(text)
    return (STUMPING, m.group(1)) if m else None

def _match_run_out(text: str):
    m = _RUN_OUT.search(text)
    if not m:
        return None
    inside = m.group(1) or ""
    # "run out (Kabir/Sahil)": the first named fielder takes the credit
    return (RUN_OUT, inside.split("/")[0])

CREDIT_MATCHERS: list[Callable[[str], tuple[str, str] | None]] = [
    _match_caught_and_bowled,
    _match_caught,
    _match_stumped,
    _match_run_out,
]


def fielding_credit(text: str) -> FieldingCredit | None:
    s = norm(text)
    if not s or lower(s) == "not out":
        return None
    for matcher in CREDIT_MATCHERS:
        hit = matcher(s)
        if hit is None:
            continue
        kind, raw_name = hit
        fielder = clean_fielder_name(raw_name)
        return FieldingCredit(kind, fielder) if fielder else None
    return None

def analyze_dismissal(text: str) -> Dismissal:
    return Dismissal(
        kind=dismissal_kind(text),
        bowled_lbw=is_bowled_or_lbw(text),
        credit=fielding_credit(text),
    )

def fielding_from_dismissals(texts: Iterable[str]) -> list[FieldingEntry]:
    """Accumulate fielding credits per distinct fielder, in first-seen order."""
    entries: dict[str, FieldingEntry] = {}
    for text in texts:
        credit = fielding_credit(text)
        if credit is None:
            continue
        key = credit.fielder.lower()
        entry = entries.setdefault(key, FieldingEntry(player_name=credit.fielder))
        if credit.kind == CATCH:
            entry.catches += 1
        elif credit.kind == RUN_OUT:
            entry.run_outs += 1
        else:
            entry.stumpings += 1
    return list(entries.values())
