"""Kind-specific upsert routines that load a source's payload into the store.

Every routine follows the same contract: fetch the payload pinned to a version
marker, validate its shape, match each entry to an existing row by natural key,
plan an insert or update, and apply the whole plan in one transaction. Entries
that reference something missing from the store (a ranking for an unknown
species, a move of an unknown type) are skipped with a warning.
"""

from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from ..data.models import SourceDescriptor, SourceKind, UpdateResult
from ..exceptions import NotFoundError, ParseError
from ..utils import Clock, to_db, utcnow

if TYPE_CHECKING:
    from ..data.database import GameDatabase, Statement
    from .feeds import FeedClient

logger = logging.getLogger(__name__)

# CP multiplier at level 50, used for max CP with perfect IVs
MAX_LEVEL_CPM = 0.84029999

_FORM_PATTERN = re.compile(r"^(?P<name>.+?)\s*\((?P<form>[^)]+)\)\s*$")


def _species_key(entry: dict[str, Any]) -> str:
    return str(entry["speciesId"])


def _move_key(entry: dict[str, Any]) -> str:
    return str(entry["moveId"])


def _ranking_key(species_id: str, league: str, scenario: str) -> str:
    return f"{species_id}:{league}:{scenario}"


def _tier_key(species_id: str, attacking_type: str) -> str:
    return f"{species_id}:{attacking_type}"


@dataclass(frozen=True)
class NaturalKeyPolicy:
    """How payload entries map to stored primary keys.

    The defaults use PvPoke species ids, which already encode the form
    (``raichu_alolan``, ``venusaur_shadow``), so a species id alone identifies a
    fact_pokemon row.
    """

    pokemon: Callable[[dict[str, Any]], str] = _species_key
    move: Callable[[dict[str, Any]], str] = _move_key
    ranking: Callable[[str, str, str], str] = _ranking_key
    tier: Callable[[str, str], str] = _tier_key


@dataclass
class UpsertPlan:
    """Statements and counts accumulated while planning one update."""

    source: SourceDescriptor
    statements: list[Statement] = field(default_factory=list)
    result: UpdateResult = field(default_factory=UpdateResult)

    def insert(self, sql: str, params: Iterable[Any]) -> None:
        self.statements.append((sql, tuple(params)))
        self.result.records_added += 1

    def update(self, sql: str, params: Iterable[Any]) -> None:
        self.statements.append((sql, tuple(params)))
        self.result.records_modified += 1

    def add(self, sql: str, params: Iterable[Any] = ()) -> None:
        """Add a statement that does not count as an added/modified record."""
        self.statements.append((sql, tuple(params)))

    def skip(self, error: NotFoundError) -> None:
        logger.warning("Skipping entry from %s: %s", self.source.name, error.message)
        self.result.records_skipped += 1


def _require_key(source: SourceDescriptor, entry: Any, *keys: str) -> None:
    if not isinstance(entry, dict):
        raise ParseError(source.id, f"expected an object, got {type(entry).__name__}")
    missing = [key for key in keys if key not in entry]
    if missing:
        raise ParseError(source.id, f"entry missing {', '.join(missing)}: {str(entry)[:80]}")


def max_cp(attack: int, defense: int, stamina: int) -> int:
    """Level 50 CP with 15/15/15 IVs."""
    cp = (
        (attack + 15)
        * math.sqrt(defense + 15)
        * math.sqrt(stamina + 15)
        * MAX_LEVEL_CPM**2
        / 10
    )
    return max(10, math.floor(cp))


def split_species_name(species_name: str) -> tuple[str, str]:
    """Split "Raichu (Alolan)" into ("Raichu", "Alolan")."""
    match = _FORM_PATTERN.match(species_name)
    if match:
        return match.group("name"), match.group("form")
    return species_name, "Normal"


class UpsertRoutine(ABC):
    """Shared fetch → plan → apply flow for one source kind."""

    kind: ClassVar[SourceKind]

    def __init__(
        self,
        db: GameDatabase,
        feed: FeedClient,
        keys: NaturalKeyPolicy | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._db = db
        self._feed = feed
        self._keys = keys or NaturalKeyPolicy()
        self._clock = clock

    async def run(self, source: SourceDescriptor, ref: str | None = None) -> UpdateResult:
        """Load the source's payload at ``ref`` and upsert it.

        Raises:
            FetchError: The payload could not be downloaded.
            ParseError: The payload does not have the expected structure.
            PersistenceError: The store rejected the batch (nothing is written).
        """
        payload = await self._feed.fetch_payload(source, ref)
        plan = UpsertPlan(source=source)
        await self.plan(source, payload, plan, ref)
        await self._db.transaction(plan.statements)
        logger.info(
            "%s: %d added, %d modified, %d skipped",
            source.name,
            plan.result.records_added,
            plan.result.records_modified,
            plan.result.records_skipped,
        )
        return plan.result

    @abstractmethod
    async def plan(
        self, source: SourceDescriptor, payload: Any, plan: UpsertPlan, ref: str | None
    ) -> None:
        """Validate the payload and fill the plan."""

    async def _ids(self, query: str) -> set[str]:
        return {row[0] for row in await self._db.all(query)}


class GameMasterRoutine(UpsertRoutine):
    """Moves and Pokemon base data from a PvPoke gamemaster document."""

    kind = SourceKind.GAMEMASTER

    async def plan(
        self, source: SourceDescriptor, payload: Any, plan: UpsertPlan, ref: str | None
    ) -> None:
        if not isinstance(payload, dict):
            raise ParseError(source.id, "gamemaster must be an object")
        for section in ("pokemon", "moves"):
            if not isinstance(payload.get(section), list):
                raise ParseError(source.id, f"gamemaster is missing a '{section}' list")

        types = await self._ids("SELECT pk_type_id FROM dim_types")
        moves = await self._plan_moves(source, payload["moves"], types, plan)
        await self._plan_pokemon(source, payload["pokemon"], types, moves, plan)

    async def _plan_moves(
        self,
        source: SourceDescriptor,
        entries: list[Any],
        types: set[str],
        plan: UpsertPlan,
    ) -> set[str]:
        existing = await self._ids("SELECT pk_move_id FROM dim_moves")
        known = set(existing)
        now = to_db(self._clock())

        for entry in entries:
            _require_key(source, entry, "moveId", "name", "type")
            move_id = self._keys.move(entry)
            move_type = str(entry["type"]).lower()
            if move_type not in types:
                plan.skip(NotFoundError("Type", f"{move_type} (move {move_id})"))
                continue

            energy_gain = entry.get("energyGain") or 0
            values = (
                entry["name"],
                "fast" if energy_gain > 0 else "charged",
                move_type,
                entry.get("power"),
                entry.get("energy"),
                energy_gain,
                entry.get("cooldown"),
            )
            if move_id in known:
                plan.update(
                    """
                    UPDATE dim_moves SET move_name = ?, move_category = ?, fk_move_type_id = ?,
                        power = ?, energy_cost = ?, energy_gain = ?, cooldown = ?, updated_at = ?
                    WHERE pk_move_id = ?
                    """,
                    (*values, now, move_id),
                )
            else:
                plan.insert(
                    """
                    INSERT INTO dim_moves (
                        pk_move_id, move_name, move_category, fk_move_type_id,
                        power, energy_cost, energy_gain, cooldown
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (move_id, *values),
                )
                known.add(move_id)
        return known

    async def _plan_pokemon(
        self,
        source: SourceDescriptor,
        entries: list[Any],
        types: set[str],
        moves: set[str],
        plan: UpsertPlan,
    ) -> None:
        known = await self._ids("SELECT pk_pokemon_id FROM fact_pokemon")
        now = to_db(self._clock())

        for entry in entries:
            _require_key(source, entry, "speciesId", "speciesName", "dex", "baseStats", "types")
            pokemon_id = self._keys.pokemon(entry)
            entry_types = [t.lower() for t in entry["types"] if t and t.lower() != "none"]
            unknown = [t for t in entry_types if t not in types]
            if not entry_types or unknown:
                plan.skip(NotFoundError("Type", f"{unknown or 'none'} (pokemon {pokemon_id})"))
                continue

            stats = entry["baseStats"]
            _require_key(source, stats, "atk", "def", "hp")
            attack, defense, stamina = stats["atk"], stats["def"], stats["hp"]
            name, form = split_species_name(entry["speciesName"])
            tags = set(entry.get("tags") or [])
            values = (
                int(entry["dex"]),
                name,
                form,
                entry_types[0],
                entry_types[1] if len(entry_types) > 1 else None,
                attack,
                defense,
                stamina,
                max_cp(attack, defense, stamina),
                int("legendary" in tags),
                int("mythical" in tags),
                int("shadoweligible" in tags or "shadow" in tags),
            )

            if pokemon_id in known:
                plan.update(
                    """
                    UPDATE fact_pokemon SET pokemon_number = ?, pokemon_name = ?, form = ?,
                        fk_primary_type_id = ?, fk_secondary_type_id = ?,
                        base_attack = ?, base_defense = ?, base_stamina = ?, max_cp = ?,
                        is_legendary = ?, is_mythical = ?, is_shadow_available = ?,
                        updated_at = ?
                    WHERE pk_pokemon_id = ?
                    """,
                    (*values, now, pokemon_id),
                )
            else:
                plan.insert(
                    """
                    INSERT INTO fact_pokemon (
                        pk_pokemon_id, pokemon_number, pokemon_name, form,
                        fk_primary_type_id, fk_secondary_type_id,
                        base_attack, base_defense, base_stamina, max_cp,
                        is_legendary, is_mythical, is_shadow_available
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (pokemon_id, *values),
                )
                known.add(pokemon_id)

            self._plan_learnset(pokemon_id, entry, moves, plan)

    def _plan_learnset(
        self, pokemon_id: str, entry: dict[str, Any], moves: set[str], plan: UpsertPlan
    ) -> None:
        legacy = set(entry.get("legacyMoves") or [])
        elite = set(entry.get("eliteMoves") or [])
        plan.add(
            "DELETE FROM bridge_pokemon_available_moves WHERE fk_pokemon_id = ?", (pokemon_id,)
        )
        for move_id in [*(entry.get("fastMoves") or []), *(entry.get("chargedMoves") or [])]:
            if move_id not in moves:
                logger.debug("Unknown move %s in learnset of %s", move_id, pokemon_id)
                continue
            if move_id in elite:
                method = "elite_tm"
            elif move_id in legacy:
                method = "legacy"
            else:
                method = "normal"
            plan.add(
                "INSERT OR IGNORE INTO bridge_pokemon_available_moves "
                "(fk_pokemon_id, fk_move_id, learn_method) VALUES (?, ?, ?)",
                (pokemon_id, move_id, method),
            )


class RankingsRoutine(UpsertRoutine):
    """PvP rankings per league and scenario from PvPoke ranking files."""

    kind = SourceKind.RANKINGS

    async def plan(
        self, source: SourceDescriptor, payload: Any, plan: UpsertPlan, ref: str | None
    ) -> None:
        if not isinstance(payload, dict):
            raise ParseError(source.id, "rankings payload must map (league, scenario) to lists")

        pokemon = await self._ids("SELECT pk_pokemon_id FROM fact_pokemon")
        leagues = await self._ids("SELECT pk_league_id FROM dim_leagues")
        scenarios = await self._ids("SELECT pk_scenario_id FROM dim_battle_scenarios")
        known = await self._ids("SELECT pk_pvp_ranking_id FROM fact_pokemon_pvp_rankings")
        now = to_db(self._clock())

        for group, entries in payload.items():
            if not (isinstance(group, tuple) and len(group) == 2):
                raise ParseError(source.id, f"unexpected rankings key: {group!r}")
            if not isinstance(entries, list):
                raise ParseError(source.id, f"rankings for {group} must be a list")
            league, scenario = group
            if league not in leagues:
                plan.skip(NotFoundError("League", league))
                continue
            if scenario not in scenarios:
                plan.skip(NotFoundError("Scenario", scenario))
                continue

            plan.add(
                "UPDATE fact_pokemon_pvp_rankings SET is_current = 0 "
                "WHERE fk_league_id = ? AND fk_scenario_id = ?",
                (league, scenario),
            )
            for position, entry in enumerate(entries, start=1):
                _require_key(source, entry, "speciesId")
                species_id = str(entry["speciesId"])
                if species_id not in pokemon:
                    plan.skip(NotFoundError("Pokemon", f"{species_id} ({league}/{scenario})"))
                    continue

                ranking_id = self._keys.ranking(species_id, league, scenario)
                values = (
                    position,
                    entry.get("score"),
                    entry.get("rating"),
                    (entry.get("stats") or {}).get("product"),
                    json.dumps(entry.get("moveset") or []),
                    ref,
                )
                if ranking_id in known:
                    plan.update(
                        """
                        UPDATE fact_pokemon_pvp_rankings SET pvp_rank_number = ?,
                            pvp_score = ?, pvp_rating = ?, stat_product = ?, moveset = ?,
                            data_source_version = ?, is_current = 1, updated_at = ?
                        WHERE pk_pvp_ranking_id = ?
                        """,
                        (*values, now, ranking_id),
                    )
                else:
                    plan.insert(
                        """
                        INSERT INTO fact_pokemon_pvp_rankings (
                            pk_pvp_ranking_id, fk_pokemon_id, fk_league_id, fk_scenario_id,
                            pvp_rank_number, pvp_score, pvp_rating, stat_product, moveset,
                            data_source_version
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (ranking_id, species_id, league, scenario, *values),
                    )
                    known.add(ranking_id)


class TiersRoutine(UpsertRoutine):
    """PvE attacker tiers per attacking type.

    Accepts either a flat list of ``{"speciesId", "type", "tier", ...}`` entries
    or an object mapping each attacking type to a list of entries without a
    ``type`` field.
    """

    kind = SourceKind.TIERS

    def _entries(self, source: SourceDescriptor, payload: Any) -> list[tuple[str, dict[str, Any]]]:
        if isinstance(payload, list):
            pairs = []
            for entry in payload:
                _require_key(source, entry, "speciesId", "type", "tier")
                pairs.append((str(entry["type"]).lower(), entry))
            return pairs
        if isinstance(payload, dict):
            pairs = []
            for attacking_type, entries in payload.items():
                if not isinstance(entries, list):
                    raise ParseError(source.id, f"tiers for {attacking_type} must be a list")
                for entry in entries:
                    _require_key(source, entry, "speciesId", "tier")
                    pairs.append((str(attacking_type).lower(), entry))
            return pairs
        raise ParseError(source.id, "tiers payload must be a list or an object")

    async def plan(
        self, source: SourceDescriptor, payload: Any, plan: UpsertPlan, ref: str | None
    ) -> None:
        pairs = self._entries(source, payload)

        pokemon = await self._ids("SELECT pk_pokemon_id FROM fact_pokemon")
        types = await self._ids("SELECT pk_type_id FROM dim_types")
        known = await self._ids("SELECT pk_pve_tier_id FROM fact_pokemon_pve_tiers")
        now = to_db(self._clock())

        for attacking_type in sorted({t for t, _ in pairs if t in types}):
            plan.add(
                "UPDATE fact_pokemon_pve_tiers SET is_current = 0 WHERE fk_attacking_type_id = ?",
                (attacking_type,),
            )

        for attacking_type, entry in pairs:
            species_id = str(entry["speciesId"])
            if attacking_type not in types:
                plan.skip(NotFoundError("Type", f"{attacking_type} (tier for {species_id})"))
                continue
            if species_id not in pokemon:
                plan.skip(NotFoundError("Pokemon", f"{species_id} ({attacking_type} tier)"))
                continue

            tier_id = self._keys.tier(species_id, attacking_type)
            values = (str(entry["tier"]), entry.get("score"), entry.get("rank"), ref)
            if tier_id in known:
                plan.update(
                    """
                    UPDATE fact_pokemon_pve_tiers SET tier_rank = ?, tier_score = ?,
                        pve_overall_rank = ?, data_source_version = ?, is_current = 1,
                        updated_at = ?
                    WHERE pk_pve_tier_id = ?
                    """,
                    (*values, now, tier_id),
                )
            else:
                plan.insert(
                    """
                    INSERT INTO fact_pokemon_pve_tiers (
                        pk_pve_tier_id, fk_pokemon_id, fk_attacking_type_id,
                        tier_rank, tier_score, pve_overall_rank, data_source_version
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (tier_id, species_id, attacking_type, *values),
                )
                known.add(tier_id)


def default_routines(
    db: GameDatabase,
    feed: FeedClient,
    keys: NaturalKeyPolicy | None = None,
    clock: Clock = utcnow,
) -> dict[SourceKind, UpsertRoutine]:
    """One routine per supported source kind."""
    routines: list[UpsertRoutine] = [
        GameMasterRoutine(db, feed, keys, clock),
        RankingsRoutine(db, feed, keys, clock),
        TiersRoutine(db, feed, keys, clock),
    ]
    return {routine.kind: routine for routine in routines}
