from pathlib import Path

import pytest

from importer import MatchStore
from name_resolver import InMemoryDirectory, NameResolver

FIXTURES = Path(__file__).resolve().parent / "fixtures"

ROSTER = """name,aliases
Naman Satija,Naman S
Tanmay Desai,Tanmay D
Kabir Singh
Sahil Mehta
Joy Banerjee
Devansh Mehra,Devansh M
Arvind Rao
"""


@pytest.fixture
def semifinal_html():
    return (FIXTURES / "scorecard_semifinal.html").read_text(encoding="utf-8")


@pytest.fixture
def roster_csv(tmp_path):
    path = tmp_path / "players.csv"
    path.write_text(ROSTER, encoding="utf-8")
    return path


@pytest.fixture
def directory(roster_csv):
    return InMemoryDirectory.from_roster_csv(roster_csv)


@pytest.fixture
def resolver(directory):
    return NameResolver(directory)


@pytest.fixture
def store():
    return MatchStore()
