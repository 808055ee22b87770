"""Tests for the kind-specific upsert routines."""

from __future__ import annotations

import json

import pytest

from pogo_core.data.database import GameDatabase
from pogo_core.data.models import SourceKind
from pogo_core.exceptions import ParseError
from pogo_core.updates import (
    GameMasterRoutine,
    NaturalKeyPolicy,
    RankingsRoutine,
    SourceRegistry,
    TiersRoutine,
    default_routines,
)
from pogo_core.updates.routines import max_cp, split_species_name

from fakes import FakeFeed


@pytest.fixture
async def loaded(db: GameDatabase, registry: SourceRegistry, feed: FakeFeed) -> GameDatabase:
    """Store with the sample gamemaster already applied."""
    await GameMasterRoutine(db, feed).run(registry.get("pvpoke-gamemaster"), "gm-1")
    return db


class TestHelpers:
    """Derived values."""

    def test_max_cp_at_level_50(self) -> None:
        assert max_cp(118, 111, 128) == 1260

    def test_max_cp_low_stats(self) -> None:
        assert max_cp(1, 1, 1) == 18

    def test_split_species_name(self) -> None:
        assert split_species_name("Raichu (Alolan)") == ("Raichu", "Alolan")
        assert split_species_name("Mewtwo") == ("Mewtwo", "Normal")

    def test_default_routines_cover_kinds(self, feed: FakeFeed) -> None:
        routines = default_routines(db=None, feed=feed)  # type: ignore[arg-type]
        assert set(routines) == {SourceKind.GAMEMASTER, SourceKind.RANKINGS, SourceKind.TIERS}


class TestGameMasterRoutine:
    """Moves, Pokemon and learnsets."""

    async def test_first_load_inserts(
        self, db: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        result = await GameMasterRoutine(db, feed).run(registry.get("pvpoke-gamemaster"), "gm-1")

        assert result.records_added == 13
        assert result.records_modified == 0
        assert result.records_skipped == 0
        assert feed.fetched == [("pvpoke-gamemaster", "gm-1")]
        assert await db.count_core_rows() == 3

    async def test_pokemon_fields(self, loaded: GameDatabase) -> None:
        raichu = await loaded.get(
            "SELECT * FROM fact_pokemon WHERE pk_pokemon_id = 'raichu_alolan'"
        )
        assert raichu is not None
        assert raichu["pokemon_name"] == "Raichu"
        assert raichu["form"] == "Alolan"
        assert raichu["fk_primary_type_id"] == "electric"
        assert raichu["fk_secondary_type_id"] == "psychic"

        mewtwo = await loaded.get("SELECT * FROM fact_pokemon WHERE pk_pokemon_id = 'mewtwo'")
        assert mewtwo is not None
        assert mewtwo["fk_secondary_type_id"] is None
        assert mewtwo["is_legendary"] == 1

        bulbasaur = await loaded.get("SELECT * FROM fact_pokemon WHERE pk_pokemon_id = 'bulbasaur'")
        assert bulbasaur is not None
        assert bulbasaur["max_cp"] == 1260
        assert bulbasaur["is_shadow_available"] == 1

    async def test_move_categories(self, loaded: GameDatabase) -> None:
        fast = await loaded.get("SELECT * FROM dim_moves WHERE pk_move_id = 'VINE_WHIP'")
        charged = await loaded.get("SELECT * FROM dim_moves WHERE pk_move_id = 'SLUDGE_BOMB'")
        assert fast is not None and fast["move_category"] == "fast"
        assert charged is not None and charged["move_category"] == "charged"

    async def test_learnsets(self, loaded: GameDatabase) -> None:
        rows = await loaded.all(
            "SELECT fk_pokemon_id, fk_move_id, learn_method FROM bridge_pokemon_available_moves"
        )
        learnsets = {(r["fk_pokemon_id"], r["fk_move_id"]): r["learn_method"] for r in rows}

        assert learnsets[("bulbasaur", "FRENZY_PLANT")] == "elite_tm"
        assert learnsets[("bulbasaur", "VINE_WHIP")] == "normal"
        assert learnsets[("raichu_alolan", "WILD_CHARGE")] == "legacy"
        # CONFUSION is not in the move list
        assert ("mewtwo", "CONFUSION") not in learnsets
        assert len(learnsets) == 10

    async def test_reload_updates_in_place(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pvpoke-gamemaster"]["pokemon"][0]["baseStats"]["atk"] = 200
        result = await GameMasterRoutine(loaded, feed).run(
            registry.get("pvpoke-gamemaster"), "gm-2"
        )

        assert result.records_added == 0
        assert result.records_modified == 13
        row = await loaded.get(
            "SELECT base_attack FROM fact_pokemon WHERE pk_pokemon_id = 'bulbasaur'"
        )
        assert row is not None
        assert row["base_attack"] == 200

    async def test_unknown_type_is_skipped(
        self, db: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pvpoke-gamemaster"] = {
            "pokemon": [],
            "moves": [{"moveId": "STAR_BURST", "name": "Star Burst", "type": "stellar"}],
        }
        result = await GameMasterRoutine(db, feed).run(registry.get("pvpoke-gamemaster"), "x")

        assert result.records_skipped == 1
        assert result.records_added == 0

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"pokemon": []},
            {"pokemon": [{"speciesName": "No Id"}], "moves": []},
            {
                "pokemon": [
                    {
                        "dex": 1,
                        "speciesId": "bulbasaur",
                        "speciesName": "Bulbasaur",
                        "baseStats": {"atk": 118, "def": 111},
                        "types": ["grass"],
                    }
                ],
                "moves": [],
            },
        ],
    )
    async def test_malformed_payload(
        self, db: GameDatabase, registry: SourceRegistry, feed: FakeFeed, payload: object
    ) -> None:
        feed.payloads["pvpoke-gamemaster"] = payload
        with pytest.raises(ParseError):
            await GameMasterRoutine(db, feed).run(registry.get("pvpoke-gamemaster"), "x")
        assert await db.count_core_rows() == 0


class TestRankingsRoutine:
    """PvP rankings keyed by species, league and scenario."""

    async def test_load_rankings(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        result = await RankingsRoutine(loaded, feed).run(registry.get("pvpoke-rankings"), "rk-1")

        assert result.records_added == 2
        assert result.records_skipped == 1  # missingno

        row = await loaded.get(
            "SELECT * FROM fact_pokemon_pvp_rankings WHERE pk_pvp_ranking_id = ?",
            ("bulbasaur:great:overall",),
        )
        assert row is not None
        assert row["pvp_rank_number"] == 1
        assert row["pvp_score"] == 90.1
        assert row["stat_product"] == 2016
        assert json.loads(row["moveset"]) == ["VINE_WHIP", "FRENZY_PLANT", "SLUDGE_BOMB"]
        assert row["data_source_version"] == "rk-1"

    async def test_reload_marks_dropped_entries_not_current(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        source = registry.get("pvpoke-rankings")
        await RankingsRoutine(loaded, feed).run(source, "rk-1")

        feed.payloads["pvpoke-rankings"] = {
            ("great", "overall"): [{"speciesId": "raichu_alolan", "score": 70.0}],
        }
        result = await RankingsRoutine(loaded, feed).run(source, "rk-2")
        assert result.records_added == 1

        rows = await loaded.all(
            "SELECT fk_pokemon_id, is_current FROM fact_pokemon_pvp_rankings "
            "WHERE fk_league_id = 'great'"
        )
        current = {r["fk_pokemon_id"]: r["is_current"] for r in rows}
        assert current == {"bulbasaur": 0, "raichu_alolan": 1}

    async def test_unknown_league_skipped(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pvpoke-rankings"] = {("mega", "overall"): [{"speciesId": "bulbasaur"}]}
        result = await RankingsRoutine(loaded, feed).run(registry.get("pvpoke-rankings"), "x")
        assert result.records_skipped == 1
        assert result.records_added == 0

    async def test_rankings_must_be_grouped(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pvpoke-rankings"] = [{"speciesId": "bulbasaur"}]
        with pytest.raises(ParseError):
            await RankingsRoutine(loaded, feed).run(registry.get("pvpoke-rankings"), "x")

    async def test_custom_key_policy(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        keys = NaturalKeyPolicy(ranking=lambda species, league, scenario: f"{league}/{species}")
        await RankingsRoutine(loaded, feed, keys=keys).run(registry.get("pvpoke-rankings"), "x")

        row = await loaded.get(
            "SELECT * FROM fact_pokemon_pvp_rankings WHERE pk_pvp_ranking_id = 'great/bulbasaur'"
        )
        assert row is not None


class TestTiersRoutine:
    """PvE tiers keyed by species and attacking type."""

    async def test_load_tier_list(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        result = await TiersRoutine(loaded, feed).run(registry.get("pokemon-resources"), "t-1")

        assert result.records_added == 2
        assert result.records_skipped == 1  # "shadow" is not a type

        row = await loaded.get(
            "SELECT * FROM fact_pokemon_pve_tiers WHERE pk_pve_tier_id = 'mewtwo:psychic'"
        )
        assert row is not None
        assert row["tier_rank"] == "S"
        assert row["pve_overall_rank"] == 1
        assert row["data_source_version"] == "t-1"

    async def test_tiers_by_type_object(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        source = registry.get("pokemon-resources")
        await TiersRoutine(loaded, feed).run(source, "t-1")

        feed.payloads["pokemon-resources"] = {
            "Psychic": [{"speciesId": "mewtwo", "tier": "S+", "score": 99.0}],
        }
        result = await TiersRoutine(loaded, feed).run(source, "t-2")

        assert result.records_modified == 1
        row = await loaded.get(
            "SELECT tier_rank FROM fact_pokemon_pve_tiers WHERE pk_pve_tier_id = 'mewtwo:psychic'"
        )
        assert row is not None
        assert row["tier_rank"] == "S+"

    async def test_unknown_species_skipped(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pokemon-resources"] = [
            {"speciesId": "pikachu_libre", "type": "fighting", "tier": "C"}
        ]
        result = await TiersRoutine(loaded, feed).run(registry.get("pokemon-resources"), "x")
        assert result.records_skipped == 1

    async def test_tiers_wrong_shape(
        self, loaded: GameDatabase, registry: SourceRegistry, feed: FakeFeed
    ) -> None:
        feed.payloads["pokemon-resources"] = "S tier: mewtwo"
        with pytest.raises(ParseError):
            await TiersRoutine(loaded, feed).run(registry.get("pokemon-resources"), "x")
