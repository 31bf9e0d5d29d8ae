"""
scorecard_parser.py: turn one saved CricClubs scorecard page into a ParsedMatchData.

CricClubs has shipped several page layouts over the years, so every lookup here
has a fallback:
- Title:   "Semi Final: UCSD vs UCLA - Los Angeles Cricket Academy" -> teams, venue.
- Header:  ".ms-league-name" holds the stage and the date, ".score-top h3" the result.
- Innings: "#ballByBallTeam1" / "#ballByBallTeam2"; batting table in ".match-table-innings",
           bowling table found through an ordered list of locators (see BOWLING_TABLE_LOCATORS).
- Extras:  total from the bold figure, breakdown mined from the row text ("(b 1 lb 2 w 7 nb 2)").

Nothing here raises for a missing field; only a document that is not HTML, or one with
neither innings container, is rejected with ScorecardParseError.
"""

from __future__ import annotations

import hashlib
import re
from datetime import date, datetime
from typing import Callable, Iterable

from bs4 import BeautifulSoup, Tag

from dismissals import fielding_from_dismissals, is_bowled_or_lbw
from models import (
    BattingEntry,
    BowlingEntry,
    ExtrasBreakdown,
    Innings,
    ParsedMatchData,
)

INNINGS_CONTAINERS = ["ballByBallTeam1", "ballByBallTeam2"]
UNKNOWN_TEAM = "Unknown"


class ScorecardParseError(ValueError):
    """Raised when a document cannot be read as a scorecard at all."""


def norm(s): return re.sub(r"\s+", " ", (str(s) if s is not None else "").strip())
def lower(s): return norm(s).lower()

def cell_text(tag) -> str:
    return norm(tag.get_text(" ", strip=True)) if tag is not None else ""

def to_int(text) -> int:
    """Leading integer of a cell ('12*' -> 12), 0 when there is none."""
    m = re.match(r"\s*(\d+)", str(text or ""))
    return int(m.group(1)) if m else 0

def to_number(text) -> float | None:
    s = norm(text).replace("<", "").replace(">", "")
    if re.fullmatch(r"-?\d+(\.\d+)?", s):
        return float(s)
    return None


# ----------------------
# Match metadata
# ----------------------
TITLE_RE = re.compile(r"^(?:.*?:\s*)?(.+?)\s+vs\.?\s+(.+?)(?:\s+-\s+(.*))?$", re.I)
DATE_RE = re.compile(r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})")
MARGIN_RE = re.compile(r"won\s+by\s+(\d+)\s+(runs?|wickets?)", re.I)

DATE_PATTERNS = [
    "%m/%d/%Y",  # 10/18/2025 (CricClubs standard, month first)
    "%m-%d-%Y",
    "%m/%d/%y",
    "%b %d %Y",
    "%d/%m/%Y",  # day-first fallback for other sources
    "%d-%m-%Y",
    "%d %b %Y",
    "%Y-%m-%d",
]

def parse_date_safely(date_str: str) -> str | None:
    """Return ISO date for the first pattern that fits; CricClubs is month-first."""
    s = norm(date_str)
    for fmt in DATE_PATTERNS:
        try:
            return datetime.strptime(s, fmt).strftime("%Y-%m-%d")
        except (ValueError, TypeError):
            continue
    return None

def parse_title(title: str) -> tuple[tuple[str, str], str | None]:
    m = TITLE_RE.match(norm(title))
    if not m:
        return (UNKNOWN_TEAM, UNKNOWN_TEAM), None
    venue = norm(m.group(3)) if m.group(3) else None
    return (norm(m.group(1)), norm(m.group(2))), venue or None

def classify_match_type(text: str) -> str:
    x = lower(text)
    if "final" in x or "semi" in x or "playoff" in x:
        return "playoff"
    if "friendly" in x:
        return "friendly"
    if "tournament" in x:
        return "tournament"
    return "league"

def opponent_of(teams: tuple[str, str], our_team: str | None = None) -> str:
    """The side that is not ours; without a designated team the first listed side."""
    if our_team:
        ours = lower(our_team)
        for team in teams:
            if ours not in lower(team) and lower(team) not in ours:
                return team
    return teams[0]

def classify_result(text: str, teams: tuple[str, str], our_team: str | None = None) -> str:
    """win/loss/tie/no_result from the result sentence.

    A "won" sentence is a loss when the opponent's name appears in it. Team names that
    share a substring can fool this; that is the known limit of the heuristic.
    """
    x = lower(text)
    if "won" in x:
        opponent = lower(opponent_of(teams, our_team))
        return "loss" if opponent and opponent in x else "win"
    if "tie" in x:
        return "tie"
    return "no_result"

def result_margin(text: str) -> str | None:
    m = MARGIN_RE.search(text or "")
    return f"{m.group(1)} {m.group(2).lower()}" if m else None

def _info_value(soup, label: str) -> str:
    """Value cell next to a 'Label:' cell in the match info table."""
    pat = re.compile(rf"^{label}\s*:?$", re.I)
    for cell in soup.find_all(["th", "td"]):
        if pat.match(cell_text(cell)):
            return cell_text(cell.find_next_sibling(["th", "td"]))
    return ""

def parse_match_metadata(soup, our_team: str | None = None) -> dict:
    title = cell_text(soup.title)
    teams, venue = parse_title(title)

    league = soup.select_one(".ms-league-name")
    league_text = cell_text(league)
    date_source = cell_text(league.find("span")) if league is not None else ""
    m = DATE_RE.search(date_source) or DATE_RE.search(league_text)
    match_date = parse_date_safely(m.group(1)) if m else None

    stage_text = re.split(r"\d", league_text, maxsplit=1)[0].strip()
    if not stage_text and ":" in title:
        stage_text = title.split(":", 1)[0]

    summary = soup.select_one(".match-summary h3 strong")
    results = soup.select(".score-top h3")
    result_text = cell_text(results[-1]) if results else ""

    toss = _info_value(soup, "Toss")
    toss_m = re.search(r"(.+?)\s+won\s+the\s+toss", toss, re.I)

    return {
        "date": match_date or date.today().isoformat(),
        "teams": teams,
        "venue": venue or _info_value(soup, "(?:Ground|Venue|Location)") or None,
        "competition": cell_text(summary) or None,
        "match_type": classify_match_type(stage_text),
        "result": classify_result(result_text, teams, our_team) if result_text else None,
        "result_margin": result_margin(result_text),
        "toss_winner": (norm(toss_m.group(1)) if toss_m else toss) or None,
        "player_of_match": _info_value(soup, r"Player\s+of\s+the\s+Match") or None,
        "stage": norm(stage_text) or None,
        "date_found": match_date is not None,
    }


# ----------------------
# Batting
# ----------------------
NAME_GLYPHS = re.compile(r"(?:\s*(?:\*|†|‡|\((?:c|wk|c\s*&\s*wk)\)))+\s*$", re.I)
PLAYER_LINK = re.compile(r"viewPlayer|player", re.I)

SECTION_PATTERNS = [
    r"^extras\b",
    r"^total\b",
    r"^did\s+not\s+bat\b",
    r"^yet\s+to\s+bat\b",
    r"\binnings\b",
    r"\bfall\s+of\s+wickets\b",
    r"\bpartnership\b",
]
HEADER_WORDS = {
    "batsman", "batsmen", "batter", "batting", "bowler", "bowling", "player",
    "r", "b", "o", "m", "w", "4s", "6s", "sr", "dot", "dots", "econ", "runs", "balls",
}

def is_section_like(text: str) -> bool:
    t = lower(text)
    return any(re.search(pat, t) for pat in SECTION_PATTERNS)

def strip_name_glyphs(name: str) -> str:
    return NAME_GLYPHS.sub("", norm(name)).strip()

def name_from_cell(cell: Tag) -> str:
    """Display name in a cell: linked name, else bold text, else the plain text."""
    link = cell.find("a", href=PLAYER_LINK)
    if link is not None:
        return cell_text(link.find("b")) or cell_text(link)
    bold = cell.find(["b", "strong"])
    if bold is not None:
        return cell_text(bold)
    text = cell_text(cell)
    if re.fullmatch(r"[\d\s.\-()/:]*", text):
        return ""
    return text

def row_cells(row: Tag) -> list[Tag]:
    return row.find_all(["th", "td"], recursive=False)

def body_rows(table: Tag) -> list[Tag]:
    rows = table.select("tbody tr")
    if rows:
        return rows
    return table.find_all("tr")[1:]

def parse_batting_row(row: Tag, position: int) -> BattingEntry | None:
    cells = row_cells(row)
    if not cells:
        return None
    first_text = cell_text(cells[0])
    if re.search(r"\b(extras|total)\b", first_text, re.I) or is_section_like(first_text):
        return None

    name_idx, raw_name = None, ""
    for i, cell in enumerate(cells):
        raw_name = name_from_cell(cell)
        if raw_name:
            name_idx = i
            break
    if name_idx is None:
        return None

    name = strip_name_glyphs(raw_name)
    if not name or lower(name) in HEADER_WORDS or is_section_like(name):
        return None

    dismissal = cell_text(cells[name_idx + 1]) if len(cells) > name_idx + 1 else ""
    stats = cells[name_idx + 2:]
    runs, balls, fours, sixes = (to_int(cell_text(stats[i])) if i < len(stats) else 0 for i in range(4))

    # Three independent signals; source pages are inconsistent about which one they use.
    not_out = (
        lower(dismissal) == "not out"
        or raw_name.rstrip().endswith("*")
        or "not out" in lower(first_text)
    )

    return BattingEntry(
        player_name=name,
        runs=runs,
        balls=balls,
        fours=fours,
        sixes=sixes,
        not_out=not_out,
        dismissal_text=dismissal,
        batting_position=position,
        bowled_lbw=is_bowled_or_lbw(dismissal),
    )

def batting_table(container: Tag, skip: Tag | None = None) -> Tag | None:
    table = container.select_one(".match-table-innings table")
    if table is not None:
        return table
    return next((t for t in container.find_all("table") if t is not skip), None)

def parse_batting(container: Tag, skip: Tag | None = None) -> list[BattingEntry]:
    table = batting_table(container, skip)
    if table is None:
        return []
    entries: list[BattingEntry] = []
    for row in body_rows(table):
        entry = parse_batting_row(row, position=len(entries) + 1)
        if entry:
            entries.append(entry)
    return entries


# ----------------------
# Bowling
# ----------------------
OVERS_HEADS = {"o", "ov", "overs"}
WICKET_HEADS = {"w", "wkt", "wkts", "wickets"}

def _bottom_section_table(scope) -> Tag | None:
    return scope.select_one(".match-innings-bottom-all table")

def _bowling_header_table(scope) -> Tag | None:
    for th in scope.find_all("th"):
        if "bowling" in lower(cell_text(th)):
            table = th.find_parent("table")
            if table is not None:
                return table
    return None

def _overs_wickets_table(scope) -> Tag | None:
    for table in scope.find_all("table"):
        head = table.find("tr")
        if head is None:
            continue
        heads = {lower(cell_text(c)) for c in row_cells(head)}
        if heads & OVERS_HEADS and heads & WICKET_HEADS:
            return table
    return None

# First locator to return a table wins; the same list is retried on the parent container.
BOWLING_TABLE_LOCATORS: list[Callable[[Tag], Tag | None]] = [
    _bottom_section_table,
    _bowling_header_table,
    _overs_wickets_table,
]

def find_bowling_table(container: Tag) -> Tag | None:
    for scope in (container, container.parent):
        if scope is None:
            continue
        for locate in BOWLING_TABLE_LOCATORS:
            table = locate(scope)
            if table is not None:
                return table
    return None

def overs_to_balls(overs) -> int:
    """'4.2' -> 26 legal balls; the digit after the point is balls into the over."""
    if overs is None:
        return 0
    s = str(overs).strip()
    if not s:
        return 0
    whole, _, part = s.partition(".")
    try:
        o = int(float(whole or 0))
    except ValueError:
        o = 0
    b = to_int(part[:1]) if part else 0
    return o * 6 + max(0, min(b, 5))

def parse_bowling_numbers(values: list[float]) -> dict:
    """Map the numeric cells of a bowling row onto fields by how many there are.

    6 -> O M Dot R W Econ
    5 -> O M R W Econ (no dots column)
    fewer -> O R W Econ, best effort
    """
    def at(i):
        return values[i] if i < len(values) else 0.0

    if len(values) >= 6:
        o, m, dot, r, w, econ = values[:6]
    elif len(values) == 5:
        o, m, r, w, econ = values
        dot = 0.0
    else:
        o, r, w, econ = at(0), at(1), at(2), at(3)
        m = dot = 0.0
    return {"overs": o, "maidens": m, "dots": dot, "runs": r, "wickets": w, "economy": econ}

def _extra_in_cells(texts: list[str], pattern: str) -> int:
    found = 0
    for text in texts:
        m = re.search(pattern, text, re.I)
        if m:
            found = int(m.group(1))
    return found

def parse_bowling_row(row: Tag) -> BowlingEntry | None:
    cells = row_cells(row)
    if len(cells) < 5:
        return None

    name, start = "", 0
    for i, cell in enumerate(cells[:4]):
        link = cell.find("a", href=PLAYER_LINK)
        if link is not None:
            name = cell_text(link.find("b")) or cell_text(link)
            start = i + 1
            break
        bold = cell.find(["b", "strong"])
        if bold is not None and "bowling" not in lower(cell_text(cell)):
            name = cell_text(bold)
            start = i + 1
            break
    if not name or lower(name) in {"bowling", "bowler"}:
        return None
    name = strip_name_glyphs(name)

    window = [cell_text(c) for c in cells[start:]]
    if len(window) < 4:
        return None
    tokens = [t for t in window if to_number(t) is not None]
    if len(tokens) < 4:
        return None

    f = parse_bowling_numbers([to_number(t) for t in tokens])
    overs = f["overs"]
    runs = int(f["runs"])
    economy = f["economy"]
    if not economy and overs > 0:
        economy = runs / overs

    return BowlingEntry(
        player_name=name,
        overs=overs,
        balls=overs_to_balls(tokens[0]),
        maidens=int(f["maidens"]),
        runs=runs,
        wickets=int(f["wickets"]),
        dots=int(f["dots"]),
        wides=_extra_in_cells(window, r"(\d+)\s*w(?:d|ide)?s?(?:\)|$|\s|,)"),
        no_balls=_extra_in_cells(window, r"(\d+)\s*nb"),
        economy=economy,
    )

def parse_bowling(table: Tag | None) -> list[BowlingEntry]:
    if table is None:
        return []
    return [e for e in (parse_bowling_row(r) for r in body_rows(table)) if e]


# ----------------------
# Extras / totals
# ----------------------
# (trailing-number form, leading-number form): "w 5" / "5w", "nb 2" / "2nb", ...
EXTRAS_PATTERNS = {
    "wides": (r"\bw(?:d|ide)?s?\s*(\d+)", r"(\d+)\s*w(?:d|ide)?s?\b"),
    "no_balls": (r"\bn(?:o)?[\s-]?b(?:all)?s?\s*(\d+)", r"(\d+)\s*n(?:o)?[\s-]?b(?:all)?s?\b"),
    "leg_byes": (r"\bl(?:eg)?[\s-]?b(?:ye)?s?\s*(\d+)", r"(\d+)\s*l(?:eg)?[\s-]?b(?:ye)?s?\b"),
    "byes": (r"(?:^|[\s(,])b(?:ye)?s?\s*(\d+)", r"(\d+)\s*b(?:ye)?s?\b"),
}

def parse_extras(text: str, total: int = 0) -> ExtrasBreakdown:
    """Breakdown mined independently of the total; the two are not reconciled."""
    found = {}
    for key, patterns in EXTRAS_PATTERNS.items():
        found[key] = 0
        for pat in patterns:
            m = re.search(pat, text or "", re.I)
            if m:
                found[key] = int(m.group(1))
                break
    return ExtrasBreakdown(total=total, **found)

def find_row(container: Tag, label: str) -> Tag | None:
    for row in container.find_all("tr"):
        cells = row_cells(row)
        if cells and re.match(rf"{label}\b", cell_text(cells[0]), re.I):
            return row
    return None

def bold_figure(row: Tag | None) -> int | None:
    if row is None:
        return None
    bolds = row.find_all(["b", "strong"])
    for b in reversed(bolds):
        m = re.match(r"\s*(\d+)", cell_text(b))
        if m:
            return int(m.group(1))
    return None

def innings_header(container: Tag) -> str:
    for cell in container.find_all(["th", "td", "h3", "h4"]):
        text = cell_text(cell)
        if "innings" in text.lower():
            return text
    return ""

def team_from_header(header: str, fallback: str) -> str:
    if not header:
        return fallback
    team = re.split(r"innings", header, maxsplit=1, flags=re.I)[0]
    team = re.sub(r"\b(1st|2nd|first|second)\b", "", team, flags=re.I)
    team = re.sub(r"\([^)]*\)", "", team)
    team = norm(team).strip(" :-")
    return team or fallback

def parse_innings(container: Tag, fallback_team: str) -> Innings:
    header = innings_header(container)
    bowling_table = find_bowling_table(container)
    batting = parse_batting(container, skip=bowling_table)

    total_row = find_row(container, "total")
    total_text = cell_text(total_row)
    total = bold_figure(total_row)
    if total is None:
        total = sum(e.runs for e in batting)

    overs_m = re.search(r"(\d+(?:\.\d+)?)\s*overs?", header, re.I) or \
        re.search(r"(\d+(?:\.\d+)?)\s*overs?", total_text, re.I)
    wickets_m = re.search(r"(\d+)\s*wickets?", header, re.I) or \
        re.search(r"\d+\s*/\s*(\d+)", header) or re.search(r"\d+\s*/\s*(\d+)", total_text)

    extras_row = find_row(container, "extras")
    extras_total = bold_figure(extras_row) or 0

    return Innings(
        team=team_from_header(header, fallback_team),
        batting=batting,
        bowling=parse_bowling(bowling_table),
        fielding=fielding_from_dismissals(e.dismissal_text for e in batting),
        total=total,
        wickets=int(wickets_m.group(1)) if wickets_m else sum(1 for e in batting if not e.not_out),
        overs=float(overs_m.group(1)) if overs_m else 0.0,
        extras=extras_total,
        extras_breakdown=parse_extras(cell_text(extras_row), extras_total),
    )


# ----------------------
# Entry points
# ----------------------
def parse_scorecard(html, our_team: str | None = None) -> ParsedMatchData:
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str) or not html.strip() or "<" not in html:
        raise ScorecardParseError("input is not an HTML document")

    soup = BeautifulSoup(html, "html.parser")
    containers = [soup.find(id=cid) for cid in INNINGS_CONTAINERS]
    if not any(c is not None for c in containers):
        raise ScorecardParseError(
            f"no innings container found (expected #{' or #'.join(INNINGS_CONTAINERS)})"
        )

    meta = parse_match_metadata(soup, our_team)
    innings = [
        parse_innings(container, meta["teams"][idx])
        for idx, container in enumerate(containers)
        if container is not None
    ]
    return ParsedMatchData(innings=innings, **meta)

def content_hash(html: str) -> str:
    """SHA-256 of the page without scripts/styles, whitespace collapsed."""
    clean = re.sub(r"<script[^>]*>[\s\S]*?</script>", "", html, flags=re.I)
    clean = re.sub(r"<style[^>]*>[\s\S]*?</style>", "", clean, flags=re.I)
    clean = re.sub(r"\s+", " ", clean).strip()
    return hashlib.sha256(clean.encode("utf-8")).hexdigest()

def match_key(parsed: ParsedMatchData) -> str:
    stage = lower(parsed.stage).replace(" ", "-") or "match"
    return f"{parsed.date}_{stage}_{'_vs_'.join(sorted(parsed.teams))}"

def is_identifiable(parsed: ParsedMatchData) -> bool:
    """Both team names and the date were read from the page itself."""
    return parsed.date_found and UNKNOWN_TEAM not in parsed.teams

def group_by_match(parsed: Iterable[ParsedMatchData]) -> dict[str, list[ParsedMatchData]]:
    """Group files that describe the same match (same date, stage and teams).

    A page missing its title or date is never grouped with another one.
    """
    groups: dict[str, list[ParsedMatchData]] = {}
    for i, p in enumerate(parsed):
        key = match_key(p) if is_identifiable(p) else f"{match_key(p)}#{i + 1}"
        groups.setdefault(key, []).append(p)
    return groups

def merge_parsed_matches(files: list[ParsedMatchData]) -> ParsedMatchData:
    """Keep the copy with the most batting entries."""
    if not files:
        raise ValueError("nothing to merge")
    return max(files, key=lambda p: p.batting_count())
