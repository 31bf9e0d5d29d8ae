"""
name_resolver.py: map scorecard display names onto stable player ids.

Scorecards spell the same person many ways ("Naman S", "Naman Satija", "naman*").
Resolution order, first hit wins:
  1. normalize (glyphs out, whitespace collapsed)
  2. match-scoped override   (this match only: "Player A batted as Player B")
  3. alias                   (case-insensitive)
  4. canonical name          (case-insensitive)
  5. first-token prefix      ("Naman" -> "Naman Satija")
  6. first name + last initial ("Naman S." -> "Naman Satija")
  7. not found -> None

The directory itself lives behind PlayerDirectory; InMemoryDirectory is the
reference store used by the CLI and the tests.
"""

from __future__ import annotations

import csv
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Protocol

from models import MatchPlayerOverride, Player, PlayerAlias, ResolvedPlayer

NAME_GLYPHS = re.compile(r"[*†‡]")
INITIAL_RE = re.compile(r"^(\w+)\s+(\w)\.?$")


class DuplicateKeyError(Exception):
    """Directory refused an insert because the key already exists."""


def norm(s): return re.sub(r"\s+", " ", (str(s) if s is not None else "").strip())

def normalize_player_name(raw_name: str) -> str:
    return norm(NAME_GLYPHS.sub("", raw_name or ""))


class PlayerDirectory(Protocol):
    def list_players(self) -> list[Player]: ...
    def list_aliases(self) -> list[PlayerAlias]: ...
    def find_override(self, match_id: str, displayed_name: str) -> MatchPlayerOverride | None: ...
    def insert_player(self, name: str) -> Player: ...
    def insert_alias(self, player_id: str, alias: str) -> PlayerAlias: ...
    def insert_override(self, match_id: str, displayed_name: str, player_id: str,
                        notes: str | None = None) -> MatchPlayerOverride: ...


# ----------------------
# In-memory directory
# ----------------------
class InMemoryDirectory:
    """Thread-safe directory; aliases are unique case-insensitively, overrides per (match, name)."""

    def __init__(self):
        self._lock = Lock()
        self._players: dict[str, Player] = {}
        self._aliases: dict[str, PlayerAlias] = {}
        self._overrides: dict[tuple[str, str], MatchPlayerOverride] = {}

    def list_players(self) -> list[Player]:
        with self._lock:
            return list(self._players.values())

    def list_aliases(self) -> list[PlayerAlias]:
        with self._lock:
            return list(self._aliases.values())

    def find_override(self, match_id, displayed_name):
        with self._lock:
            return self._overrides.get((match_id, displayed_name))

    def insert_player(self, name: str) -> Player:
        with self._lock:
            player = Player(id=str(uuid.uuid4()), name=name)
            self._players[player.id] = player
            return player

    def insert_alias(self, player_id: str, alias: str) -> PlayerAlias:
        key = alias.lower()
        with self._lock:
            if key in self._aliases:
                raise DuplicateKeyError(f"alias {alias!r} already exists")
            row = PlayerAlias(player_id=player_id, alias=alias)
            self._aliases[key] = row
            return row

    def insert_override(self, match_id, displayed_name, player_id, notes=None):
        key = (match_id, displayed_name)
        with self._lock:
            if key in self._overrides:
                raise DuplicateKeyError(f"override for {displayed_name!r} in match {match_id} already exists")
            row = MatchPlayerOverride(match_id, displayed_name, player_id, notes)
            self._overrides[key] = row
            return row

    @classmethod
    def from_roster_csv(cls, csv_path, base_dir: Path | None = None) -> "InMemoryDirectory":
        """Seed from a CSV of `canonical name, alias, alias, ...` rows.

        A header row starting with "name" is skipped; a missing file yields an
        empty directory.
        """
        directory = cls()
        if not csv_path:
            return directory
        path = Path(str(csv_path).strip())
        if not path.is_absolute() and base_dir is not None:
            path = (base_dir / path).resolve()
        if not path.exists():
            print(f"[warn] players_csv not found at {path}; starting with an empty player directory.")
            return directory

        n_aliases = 0
        with path.open("r", encoding="utf-8") as f:
            for row in csv.reader(f):
                cells = [normalize_player_name(c) for c in row if normalize_player_name(c)]
                if not cells or cells[0].lower() == "name":
                    continue
                player = directory.insert_player(cells[0])
                for alias in cells[1:]:
                    try:
                        directory.insert_alias(player.id, alias)
                        n_aliases += 1
                    except DuplicateKeyError:
                        print(f"[warn] alias {alias!r} for {cells[0]} already taken; skipped.")
        if directory._players:
            print(f"[info] loaded {len(directory._players)} roster entries ({n_aliases} aliases) from {path}.")
        else:
            print(f"[warn] roster file {path} contained no player names.")
        return directory


# ----------------------
# Cache
# ----------------------
@dataclass(frozen=True)
class _Snapshot:
    by_id: dict[str, Player] = field(default_factory=dict)
    by_name: dict[str, Player] = field(default_factory=dict)
    alias_ids: dict[str, str] = field(default_factory=dict)
    # (lower-cased key, player id): canonical names first, then aliases, directory order
    keys: tuple[tuple[str, str], ...] = ()


class PlayerCache:
    """Lazily built view of the directory.

    The snapshot is replaced whole under the lock, so a reader holding the old
    one keeps a consistent view until its next get().
    """

    def __init__(self, directory: PlayerDirectory):
        self.directory = directory
        self._lock = Lock()
        self._snapshot: _Snapshot | None = None

    def get(self) -> _Snapshot:
        snap = self._snapshot
        if snap is not None:
            return snap
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._build()
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None

    def _build(self) -> _Snapshot:
        players = self.directory.list_players()
        aliases = self.directory.list_aliases()
        by_id = {p.id: p for p in players}
        by_name = {}
        for p in players:
            by_name.setdefault(p.name.lower(), p)
        alias_ids = {}
        for a in aliases:
            alias_ids.setdefault(a.alias.lower(), a.player_id)
        keys = [(p.name.lower(), p.id) for p in players]
        keys += [(a.alias.lower(), a.player_id) for a in aliases]
        return _Snapshot(by_id, by_name, alias_ids, tuple(keys))


# ----------------------
# Resolver
# ----------------------
class NameResolver:
    def __init__(self, directory: PlayerDirectory, cache: PlayerCache | None = None):
        self.directory = directory
        self.cache = cache or PlayerCache(directory)
        self._create_lock = Lock()

    def _player(self, player_id: str) -> Player | None:
        player = self.cache.get().by_id.get(player_id)
        if player is None:
            self.cache.invalidate()
            player = self.cache.get().by_id.get(player_id)
        return player

    def resolve(self, raw_name: str, match_id: str | None = None) -> ResolvedPlayer | None:
        name = normalize_player_name(raw_name)
        if not name:
            return None
        key = name.lower()

        if match_id:
            override = self.directory.find_override(match_id, name)
            if override is not None:
                player = self._player(override.player_id)
                return ResolvedPlayer(override.player_id, player.name if player else name)

        snap = self.cache.get()

        player_id = snap.alias_ids.get(key)
        if player_id and player_id in snap.by_id:
            return ResolvedPlayer(player_id, snap.by_id[player_id].name)

        player = snap.by_name.get(key)
        if player is not None:
            return ResolvedPlayer(player.id, player.name)

        first = key.split(" ")[0]
        for k, pid in snap.keys:
            if k.split(" ")[0].startswith(first) and pid in snap.by_id:
                return ResolvedPlayer(pid, snap.by_id[pid].name)

        m = INITIAL_RE.match(key)
        if m:
            first, initial = m.groups()
            for p in snap.by_id.values():
                parts = p.name.lower().split(" ")
                if len(parts) > 1 and parts[0] == first and parts[-1].startswith(initial):
                    return ResolvedPlayer(p.id, p.name)

        return None

    def create_if_not_exists(self, name: str) -> str:
        """Return the id of the player `name` resolves to, creating one on a miss."""
        normalized = normalize_player_name(name)
        with self._create_lock:
            found = self.resolve(normalized)
            if found is not None:
                return found.player_id
            player = self.directory.insert_player(normalized)
            raw = norm(name)
            if raw and raw != normalized:
                try:
                    self.directory.insert_alias(player.id, raw)
                except DuplicateKeyError:
                    pass
            self.cache.invalidate()
            return player.id

    def add_alias(self, player_id: str, alias: str) -> None:
        try:
            self.directory.insert_alias(player_id, normalize_player_name(alias))
        except DuplicateKeyError:
            pass
        self.cache.invalidate()

    def add_override(self, match_id: str, displayed_name: str, player_id: str,
                     notes: str | None = None) -> None:
        try:
            self.directory.insert_override(match_id, normalize_player_name(displayed_name), player_id, notes)
        except DuplicateKeyError:
            pass
        self.cache.invalidate()
