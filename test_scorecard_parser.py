from dataclasses import replace
from datetime import date

import pytest

from scorecard_parser import (
    ScorecardParseError,
    classify_match_type,
    classify_result,
    content_hash,
    group_by_match,
    merge_parsed_matches,
    overs_to_balls,
    parse_bowling_numbers,
    parse_extras,
    parse_scorecard,
)

# Batting table only in the container; the bowling table sits beside it with an
# "O ... W" header and no "Bowling" label.
SPARSE_PAGE = """<html><head><title>League: Alpha XI vs Beta CC - Field 2</title></head><body>
<div class="ms-league-name">Round 3 <span>03/02/2026</span></div>
<div class="score-top"><h3>Beta CC won by 12 runs</h3></div>
<div class="wrap">
  <div id="ballByBallTeam1">
    <div class="match-table-innings"><table>
      <thead><tr><th>Alpha XI Innings</th><th></th><th>R</th><th>B</th><th>4s</th><th>6s</th></tr></thead>
      <tbody>
        <tr><td><a href="/viewPlayer.do?playerId=1"><b>Sam T</b></a></td><td>b Lee</td><td>30</td><td>25</td><td>3</td><td>0</td></tr>
        <tr><td><a href="/viewPlayer.do?playerId=2"><b>Max R</b></a></td><td>not out</td><td>x</td><td></td><td>1</td><td>0</td></tr>
      </tbody>
    </table></div>
  </div>
  <table>
    <tr><th>Bowler</th><th>O</th><th>R</th><th>W</th><th>Econ</th></tr>
    <tr><td><b>Lee</b></td><td>4</td><td>26</td><td>1</td><td>6.50</td></tr>
  </table>
</div>
</body></html>"""


@pytest.fixture
def parsed(semifinal_html):
    return parse_scorecard(semifinal_html, our_team="UCLA")


def test_match_metadata(parsed):
    assert parsed.teams == ("UCSD", "UCLA")
    assert parsed.venue == "Los Angeles Cricket Academy"
    assert parsed.date == "2025-11-16"
    assert parsed.competition == "SoCal Collegiate Cricket League 2025"
    assert parsed.match_type == "playoff"
    assert parsed.result == "win"
    assert parsed.result_margin == "5 wickets"
    assert parsed.toss_winner == "UCSD"
    assert parsed.player_of_match == "Naman Satija"


def test_innings_figures(parsed):
    first, second = parsed.innings
    assert (first.team, first.total, first.wickets, first.overs) == ("UCSD", 137, 8, 20.0)
    assert (second.team, second.total, second.wickets, second.overs) == ("UCLA", 138, 5, 18.4)
    assert first.extras == 12
    assert (first.extras_breakdown.byes, first.extras_breakdown.leg_byes,
            first.extras_breakdown.wides, first.extras_breakdown.no_balls) == (1, 2, 7, 2)
    assert second.extras_breakdown.total == 8
    assert second.extras_breakdown.leg_byes == 1


def test_batting_rows(parsed):
    batting = parsed.innings[0].batting
    # Extras, Total and "Did not bat" rows are not batters
    assert [b.player_name for b in batting] == [
        "Rohan K", "Vikram P", "Arjun M", "Dev S", "Ishaan R",
        "Karan J", "Neil T", "Om P", "Pranav D", "Ravi S",
    ]
    assert [b.batting_position for b in batting] == list(range(1, 11))

    rohan = batting[0]
    assert (rohan.runs, rohan.balls, rohan.fours, rohan.sixes) == (34, 28, 4, 1)
    assert rohan.dismissal_text == "c Naman S b Tanmay D"
    assert not rohan.not_out and not rohan.bowled_lbw

    assert batting[1].bowled_lbw  # b Tanmay D
    assert batting[4].bowled_lbw  # lbw b Arvind
    assert batting[8].not_out and batting[9].not_out
    assert all(b.runs >= 0 and b.balls >= 0 for b in batting)


def test_captain_and_keeper_glyphs_stripped(parsed):
    names = [b.player_name for b in parsed.innings[1].batting]
    assert names[0] == "Naman S"
    assert names[3] == "Sahil"
    assert names[5] == "Devansh M"
    assert parsed.innings[1].batting[5].not_out


def test_bowling_six_column_layout(parsed):
    bowling = parsed.innings[0].bowling
    assert [b.player_name for b in bowling] == ["Tanmay D", "Arvind", "Joy", "Kabir", "Naman S"]
    tanmay = bowling[0]
    assert (tanmay.overs, tanmay.balls, tanmay.maidens, tanmay.dots, tanmay.runs, tanmay.wickets) == (4, 24, 0, 12, 18, 2)
    assert tanmay.economy == 4.5
    assert bowling[1].maidens == 1
    assert bowling[2].wides == 4
    assert (bowling[4].wides, bowling[4].no_balls) == (3, 2)


def test_bowling_five_column_layout_has_no_dots(parsed):
    bowling = parsed.innings[1].bowling
    assert len(bowling) == 5
    karan = bowling[2]
    assert karan.player_name == "Karan J"
    assert (karan.overs, karan.balls, karan.runs, karan.wickets, karan.dots) == (3.4, 22, 26, 1, 0)
    assert karan.economy == pytest.approx(7.09)


def test_fielding_credits_from_dismissals(parsed):
    fielding = {f.player_name: f for f in parsed.innings[0].fielding}
    assert list(fielding) == ["Naman S", "Kabir", "Sahil", "Rafid"]
    assert fielding["Naman S"].catches == 2
    assert (fielding["Kabir"].catches, fielding["Kabir"].run_outs) == (1, 1)
    assert fielding["Sahil"].stumpings == 1
    assert fielding["Rafid"].catches == 1


def test_sparse_page_fallbacks():
    parsed = parse_scorecard(SPARSE_PAGE)
    assert parsed.teams == ("Alpha XI", "Beta CC")
    assert parsed.date == "2026-03-02"
    assert parsed.match_type == "league"
    assert len(parsed.innings) == 1

    inn = parsed.innings[0]
    assert inn.team == "Alpha XI"
    assert inn.total == 30  # no Total row: sum of batting runs
    assert inn.wickets == 1
    assert inn.overs == 0.0
    max_r = inn.batting[1]
    assert (max_r.runs, max_r.balls, max_r.not_out) == (0, 0, True)

    [lee] = inn.bowling
    assert (lee.player_name, lee.overs, lee.runs, lee.wickets, lee.economy) == ("Lee", 4, 26, 1, 6.5)


def test_result_depends_on_designated_team():
    assert parse_scorecard(SPARSE_PAGE).result == "win"
    assert parse_scorecard(SPARSE_PAGE, our_team="Alpha XI").result == "loss"


def test_missing_title_and_date_use_defaults():
    html = """<html><body><div id="ballByBallTeam2"><table>
      <tr><th>Batter</th><th></th><th>R</th><th>B</th></tr>
      <tr><td><b>Solo</b></td><td>not out</td><td>4</td><td>3</td></tr>
    </table></div></body></html>"""
    parsed = parse_scorecard(html)
    assert parsed.teams == ("Unknown", "Unknown")
    assert parsed.date == date.today().isoformat()
    assert not parsed.date_found
    assert parsed.stage is None
    assert parsed.result is None
    assert parsed.innings[0].team == "Unknown"
    assert [b.player_name for b in parsed.innings[0].batting] == ["Solo"]
    assert parsed.innings[0].bowling == []


@pytest.mark.parametrize("html", [
    "",
    "   ",
    "just some text",
    "<html><body><p>No scorecard here</p></body></html>",
    None,
])
def test_unparseable_documents_raise(html):
    with pytest.raises(ScorecardParseError):
        parse_scorecard(html)


def test_overs_to_balls():
    assert overs_to_balls("4.2") == 26
    assert overs_to_balls("4.0") == 24
    assert overs_to_balls(4) == 24
    assert overs_to_balls("") == 0
    assert overs_to_balls(None) == 0


def test_bowling_arity_mapping():
    six = parse_bowling_numbers([4, 0, 12, 18, 2, 4.5])
    assert six == {"overs": 4, "maidens": 0, "dots": 12, "runs": 18, "wickets": 2, "economy": 4.5}
    five = parse_bowling_numbers([4, 0, 18, 2, 4.5])
    assert five == {"overs": 4, "maidens": 0, "dots": 0.0, "runs": 18, "wickets": 2, "economy": 4.5}
    four = parse_bowling_numbers([4, 26, 1, 6.5])
    assert (four["overs"], four["runs"], four["wickets"], four["economy"]) == (4, 26, 1, 6.5)


def test_economy_falls_back_to_runs_over_decimal_overs():
    html = """<html><body><div id="ballByBallTeam1">
      <div class="match-innings-bottom-all"><table>
        <thead><tr><th>Bowling</th><th>O</th><th>M</th><th>Dot</th><th>R</th><th>W</th><th>Econ</th></tr></thead>
        <tbody><tr><td><b>Arvind</b></td><td>4.2</td><td>0</td><td>10</td><td>26</td><td>1</td><td>0</td></tr></tbody>
      </table></div></div></body></html>"""
    [arvind] = parse_scorecard(html).innings[0].bowling
    assert arvind.balls == 26
    assert arvind.economy == pytest.approx(26 / 4.2)
    assert round(arvind.economy, 2) == 6.19


def test_parse_extras_both_notations():
    trailing = parse_extras("Extras (b 1 lb 2 w 7 nb 2)", total=12)
    assert (trailing.total, trailing.byes, trailing.leg_byes, trailing.wides, trailing.no_balls) == (12, 1, 2, 7, 2)
    leading = parse_extras("Extras 9 (5w, 2nb, 2lb)", total=9)
    assert (leading.wides, leading.no_balls, leading.leg_byes, leading.byes) == (5, 2, 2, 0)
    # breakdown is reported as found, even when it does not add up
    odd = parse_extras("(w 10)", total=3)
    assert (odd.total, odd.wides) == (3, 10)


def test_classify_match_type():
    assert classify_match_type("Semi Final") == "playoff"
    assert classify_match_type("Playoffs") == "playoff"
    assert classify_match_type("Friendly") == "friendly"
    assert classify_match_type("Winter Tournament") == "tournament"
    assert classify_match_type("") == "league"


def test_classify_result():
    teams = ("UCSD", "UCLA")
    assert classify_result("UCLA won by 5 wickets", teams, "UCLA") == "win"
    assert classify_result("UCSD won by 12 runs", teams, "UCLA") == "loss"
    assert classify_result("Match tied", teams, "UCLA") == "tie"
    assert classify_result("Match abandoned", teams, "UCLA") == "no_result"


def test_content_hash_ignores_scripts_and_whitespace(semifinal_html):
    h = content_hash(semifinal_html)
    assert len(h) == 64 and all(c in "0123456789abcdef" for c in h)
    reworded_script = semifinal_html.replace("ts: 1763330112", "ts: 1763339999")
    assert content_hash(reworded_script) == h
    assert content_hash(semifinal_html.replace("\n", "\n\n   ")) == h
    assert content_hash(semifinal_html.replace(">34<", ">35<")) != h


def test_copies_of_one_match_group_and_merge(parsed):
    partial = replace(parsed, innings=parsed.innings[:1])
    swapped = replace(parsed, teams=("UCLA", "UCSD"), innings=[])
    other_day = replace(parsed, date="2025-11-23")

    groups = group_by_match([partial, parsed, swapped, other_day])
    assert sorted(len(g) for g in groups.values()) == [1, 3]

    [same_match] = [g for g in groups.values() if len(g) == 3]
    assert merge_parsed_matches(same_match) is parsed
    with pytest.raises(ValueError):
        merge_parsed_matches([])


def test_same_day_fixtures_with_different_stages_stay_apart(parsed):
    final = replace(parsed, stage="Final")
    assert sorted(len(g) for g in group_by_match([parsed, final]).values()) == [1, 1]


def test_pages_without_title_or_date_are_never_grouped(parsed):
    untitled = replace(parsed, teams=("Unknown", "Unknown"))
    undated = replace(parsed, date_found=False)
    groups = group_by_match([untitled, replace(untitled), undated, replace(undated)])
    assert len(groups) == 4
