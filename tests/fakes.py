"""Fake feed, clock and sample payloads shared by the tests."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any

from pogo_core.data.models import SourceDescriptor, SourceKind

GAMEMASTER: dict[str, Any] = {
    "pokemon": [
        {
            "dex": 1,
            "speciesName": "Bulbasaur",
            "speciesId": "bulbasaur",
            "baseStats": {"atk": 118, "def": 111, "hp": 128},
            "types": ["grass", "poison"],
            "fastMoves": ["VINE_WHIP", "TACKLE"],
            "chargedMoves": ["SLUDGE_BOMB", "FRENZY_PLANT"],
            "eliteMoves": ["FRENZY_PLANT"],
            "tags": ["shadoweligible"],
        },
        {
            "dex": 26,
            "speciesName": "Raichu (Alolan)",
            "speciesId": "raichu_alolan",
            "baseStats": {"atk": 201, "def": 154, "hp": 155},
            "types": ["electric", "psychic"],
            "fastMoves": ["VOLT_SWITCH"],
            "chargedMoves": ["WILD_CHARGE", "PSYCHIC"],
            "legacyMoves": ["WILD_CHARGE"],
        },
        {
            "dex": 150,
            "speciesName": "Mewtwo",
            "speciesId": "mewtwo",
            "baseStats": {"atk": 300, "def": 182, "hp": 214},
            "types": ["psychic", "none"],
            "fastMoves": ["PSYCHO_CUT", "CONFUSION"],
            "chargedMoves": ["PSYSTRIKE", "SHADOW_BALL"],
            "tags": ["legendary"],
        },
    ],
    "moves": [
        {"moveId": "VINE_WHIP", "name": "Vine Whip", "type": "grass", "power": 5,
         "energy": 0, "energyGain": 8, "cooldown": 1000},
        {"moveId": "TACKLE", "name": "Tackle", "type": "normal", "power": 3,
         "energy": 0, "energyGain": 3, "cooldown": 500},
        {"moveId": "SLUDGE_BOMB", "name": "Sludge Bomb", "type": "poison", "power": 80,
         "energy": 50, "energyGain": 0, "cooldown": 500},
        {"moveId": "FRENZY_PLANT", "name": "Frenzy Plant", "type": "grass", "power": 100,
         "energy": 45, "energyGain": 0, "cooldown": 500},
        {"moveId": "VOLT_SWITCH", "name": "Volt Switch", "type": "electric", "power": 12,
         "energy": 0, "energyGain": 16, "cooldown": 2000},
        {"moveId": "WILD_CHARGE", "name": "Wild Charge", "type": "electric", "power": 100,
         "energy": 45, "energyGain": 0, "cooldown": 500},
        {"moveId": "PSYCHIC", "name": "Psychic", "type": "psychic", "power": 75,
         "energy": 55, "energyGain": 0, "cooldown": 500},
        {"moveId": "PSYCHO_CUT", "name": "Psycho Cut", "type": "psychic", "power": 3,
         "energy": 0, "energyGain": 9, "cooldown": 1000},
        {"moveId": "PSYSTRIKE", "name": "Psystrike", "type": "psychic", "power": 90,
         "energy": 45, "energyGain": 0, "cooldown": 500},
        {"moveId": "SHADOW_BALL", "name": "Shadow Ball", "type": "ghost", "power": 100,
         "energy": 55, "energyGain": 0, "cooldown": 500},
    ],
}

RANKINGS: dict[tuple[str, str], list[dict[str, Any]]] = {
    ("great", "overall"): [
        {
            "speciesId": "bulbasaur",
            "score": 90.1,
            "rating": 612,
            "moveset": ["VINE_WHIP", "FRENZY_PLANT", "SLUDGE_BOMB"],
            "stats": {"product": 2016},
        },
        {"speciesId": "missingno", "score": 12.0},
    ],
    ("ultra", "overall"): [
        {"speciesId": "raichu_alolan", "score": 80.5, "moveset": ["VOLT_SWITCH", "WILD_CHARGE"]},
    ],
}

TIERS: list[dict[str, Any]] = [
    {"speciesId": "mewtwo", "type": "psychic", "tier": "S", "score": 98.5, "rank": 1},
    {"speciesId": "raichu_alolan", "type": "electric", "tier": "B", "score": 71.0, "rank": 20},
    {"speciesId": "mewtwo", "type": "shadow", "tier": "A"},
]


class FakeFeed:
    """In-memory feed client with per-source markers, payloads and failures."""

    def __init__(self) -> None:
        self.markers: dict[str, str] = {}
        self.payloads: dict[str, Any] = copy.deepcopy(
            {
                "pvpoke-gamemaster": GAMEMASTER,
                "pvpoke-rankings": RANKINGS,
                "pokemon-resources": TIERS,
            }
        )
        self.resolve_errors: dict[str, Exception] = {}
        self.fetch_errors: dict[str, Exception] = {}
        self.resolved: list[str] = []
        self.fetched: list[tuple[str, str | None]] = []

    async def resolve_version_marker(self, source: SourceDescriptor) -> str:
        self.resolved.append(source.id)
        if source.id in self.resolve_errors:
            raise self.resolve_errors[source.id]
        return self.markers.get(source.id, f"{source.id}-v1")

    async def fetch_payload(self, source: SourceDescriptor, ref: str | None = None) -> Any:
        self.fetched.append((source.id, ref))
        if source.id in self.fetch_errors:
            raise self.fetch_errors[source.id]
        return copy.deepcopy(self.payloads[source.id])


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_source(
    source_id: str,
    kind: SourceKind = SourceKind.TIERS,
    check_interval: float = 3600,
    is_active: bool = True,
) -> SourceDescriptor:
    return SourceDescriptor(
        id=source_id,
        name=source_id.replace("-", " ").title(),
        kind=kind,
        repository="example/data",
        path=f"{source_id}.json",
        check_interval=check_interval,
        is_active=is_active,
    )


