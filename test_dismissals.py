import pytest

from dismissals import (
    CATCH,
    RUN_OUT,
    STUMPING,
    analyze_dismissal,
    clean_fielder_name,
    dismissal_kind,
    fielding_credit,
    fielding_from_dismissals,
    is_bowled_or_lbw,
)


@pytest.mark.parametrize("text, kind, fielder", [
    ("c Naman S b Tanmay D", CATCH, "Naman S"),
    ("c & b Kabir", CATCH, "Kabir"),
    ("c&b Kabir", CATCH, "Kabir"),
    ("c Naman S", CATCH, "Naman S"),
    ("c sub (Rafid) b Joy", CATCH, "Rafid"),
    ("c †Sahil b Arvind", CATCH, "Sahil"),
    ("st Sahil b Arvind", STUMPING, "Sahil"),
    ("st †Sahil b Arvind", STUMPING, "Sahil"),
    ("run out (Kabir)", RUN_OUT, "Kabir"),
    ("run out (Kabir/Sahil)", RUN_OUT, "Kabir"),
    ("Run Out (kabir)", RUN_OUT, "kabir"),
])
def test_fielding_credit(text, kind, fielder):
    credit = fielding_credit(text)
    assert credit is not None
    assert (credit.kind, credit.fielder) == (kind, fielder)


@pytest.mark.parametrize("text", [
    "not out",
    "b Tanmay D",
    "lbw b Arvind",
    "run out",
    "run out (sub)",
    "c sub b Joy",
    "retired hurt",
    "",
])
def test_no_fielding_credit(text):
    assert fielding_credit(text) is None


def test_bowled_or_lbw():
    assert is_bowled_or_lbw("b Tanmay D")
    assert is_bowled_or_lbw("lbw b Arvind")
    assert is_bowled_or_lbw("Bowled")
    assert not is_bowled_or_lbw("c Naman S b Tanmay D")
    assert not is_bowled_or_lbw("st Sahil b Arvind")
    assert not is_bowled_or_lbw("not out")


@pytest.mark.parametrize("text, kind", [
    ("not out", "not out"),
    ("c Naman S b Tanmay D", "caught"),
    ("c & b Kabir", "caught"),
    ("st Sahil b Arvind", "stumped"),
    ("run out (Kabir)", "run out"),
    ("lbw b Arvind", "lbw"),
    ("b Tanmay D", "bowled"),
    ("retired hurt", "retired"),
    ("obstructing the field", "other"),
    ("", "other"),
])
def test_dismissal_kind(text, kind):
    assert dismissal_kind(text) == kind


def test_analyze_dismissal_caught():
    d = analyze_dismissal("c Naman S b Tanmay D")
    assert d.kind == "caught"
    assert not d.bowled_lbw
    assert d.credit.fielder == "Naman S"


def test_analyze_dismissal_not_out():
    d = analyze_dismissal("not out")
    assert d.kind == "not out"
    assert d.credit is None


def test_clean_fielder_name():
    assert clean_fielder_name("sub (Rafid)") == "Rafid"
    assert clean_fielder_name("  wk  Sahil ") == "Sahil"
    assert clean_fielder_name("†Sahil") == "Sahil"
    assert clean_fielder_name("sub") == ""
    assert clean_fielder_name("Subhash K") == "Subhash K"


def test_fielding_totals_merge_case_insensitively():
    entries = fielding_from_dismissals([
        "c Naman S b Tanmay D",
        "run out (Kabir)",
        "c naman s b Joy",
        "st Sahil b Arvind",
        "not out",
        "c & b Kabir",
    ])
    assert [e.player_name for e in entries] == ["Naman S", "Kabir", "Sahil"]
    naman, kabir, sahil = entries
    assert (naman.catches, naman.run_outs, naman.stumpings) == (2, 0, 0)
    assert (kabir.catches, kabir.run_outs) == (1, 1)
    assert sahil.stumpings == 1
    assert kabir.dismissals == 2


def test_each_dismissal_credits_one_fielder():
    entries = fielding_from_dismissals(["c Naman S b Tanmay D"])
    assert len(entries) == 1
    assert entries[0].dismissals == 1
