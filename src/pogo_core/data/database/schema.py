"""Schema and reference data for the local game database."""

from __future__ import annotations

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Reference dimensions
CREATE TABLE IF NOT EXISTS dim_types (
    pk_type_id TEXT PRIMARY KEY,
    type_name TEXT NOT NULL UNIQUE,
    type_color TEXT,
    generation_introduced INTEGER,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS dim_leagues (
    pk_league_id TEXT PRIMARY KEY,
    league_name TEXT NOT NULL,
    cp_limit INTEGER,
    league_category TEXT CHECK (league_category IN ('pvp', 'pve', 'special')),
    is_active INTEGER DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS dim_battle_scenarios (
    pk_scenario_id TEXT PRIMARY KEY,
    scenario_name TEXT NOT NULL,
    scenario_description TEXT,
    scenario_category TEXT CHECK (scenario_category IN ('pvp', 'pve')),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS dim_date (
    pk_date_id TEXT PRIMARY KEY,
    full_date DATE NOT NULL UNIQUE,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    day INTEGER NOT NULL,
    quarter INTEGER NOT NULL,
    is_weekend INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Core game data
CREATE TABLE IF NOT EXISTS fact_pokemon (
    pk_pokemon_id TEXT PRIMARY KEY,
    pokemon_number INTEGER NOT NULL,
    pokemon_name TEXT NOT NULL,
    form TEXT DEFAULT 'Normal',
    fk_primary_type_id TEXT REFERENCES dim_types(pk_type_id),
    fk_secondary_type_id TEXT REFERENCES dim_types(pk_type_id),
    base_attack INTEGER NOT NULL,
    base_defense INTEGER NOT NULL,
    base_stamina INTEGER NOT NULL,
    max_cp INTEGER,
    is_legendary INTEGER DEFAULT 0,
    is_mythical INTEGER DEFAULT 0,
    is_shadow_available INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_pokemon_number ON fact_pokemon(pokemon_number);
CREATE INDEX IF NOT EXISTS idx_pokemon_name ON fact_pokemon(pokemon_name);

CREATE TABLE IF NOT EXISTS dim_moves (
    pk_move_id TEXT PRIMARY KEY,
    move_name TEXT NOT NULL,
    move_category TEXT CHECK (move_category IN ('fast', 'charged')),
    fk_move_type_id TEXT NOT NULL REFERENCES dim_types(pk_type_id),
    power INTEGER,
    energy_cost INTEGER,
    energy_gain INTEGER,
    cooldown REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS bridge_pokemon_available_moves (
    fk_pokemon_id TEXT NOT NULL REFERENCES fact_pokemon(pk_pokemon_id),
    fk_move_id TEXT NOT NULL REFERENCES dim_moves(pk_move_id),
    learn_method TEXT CHECK (learn_method IN ('normal', 'legacy', 'elite_tm')),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (fk_pokemon_id, fk_move_id)
);

CREATE INDEX IF NOT EXISTS idx_moveset_move ON bridge_pokemon_available_moves(fk_move_id);

-- Time-varying metrics
CREATE TABLE IF NOT EXISTS fact_pokemon_pvp_rankings (
    pk_pvp_ranking_id TEXT PRIMARY KEY,
    fk_pokemon_id TEXT NOT NULL REFERENCES fact_pokemon(pk_pokemon_id),
    fk_league_id TEXT NOT NULL REFERENCES dim_leagues(pk_league_id),
    fk_scenario_id TEXT NOT NULL REFERENCES dim_battle_scenarios(pk_scenario_id),
    pvp_rank_number INTEGER,
    pvp_score REAL,
    pvp_rating REAL,
    stat_product REAL,
    moveset TEXT,
    is_current INTEGER DEFAULT 1,
    data_source_version TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (fk_pokemon_id, fk_league_id, fk_scenario_id)
);

CREATE INDEX IF NOT EXISTS idx_pvp_rank ON fact_pokemon_pvp_rankings(fk_league_id, pvp_rank_number);

CREATE TABLE IF NOT EXISTS fact_pokemon_pve_tiers (
    pk_pve_tier_id TEXT PRIMARY KEY,
    fk_pokemon_id TEXT NOT NULL REFERENCES fact_pokemon(pk_pokemon_id),
    fk_attacking_type_id TEXT NOT NULL REFERENCES dim_types(pk_type_id),
    tier_rank TEXT,
    tier_score REAL,
    pve_overall_rank INTEGER,
    is_current INTEGER DEFAULT 1,
    data_source_version TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (fk_pokemon_id, fk_attacking_type_id)
);

CREATE INDEX IF NOT EXISTS idx_pve_tier_rank
    ON fact_pokemon_pve_tiers(fk_attacking_type_id, tier_rank);

-- Update tracking
CREATE TABLE IF NOT EXISTS dim_data_sources (
    pk_source_id TEXT PRIMARY KEY,
    source_name TEXT NOT NULL,
    source_type TEXT CHECK (source_type IN ('rankings', 'gamemaster', 'tiers', 'moves')),
    repository_url TEXT,
    file_path TEXT,
    branch TEXT,
    last_check_timestamp TIMESTAMP,
    last_update_timestamp TIMESTAMP,
    last_version_marker TEXT,
    update_frequency REAL, -- hours between checks
    is_active INTEGER DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS fact_data_updates (
    pk_update_id TEXT PRIMARY KEY,
    fk_source_id TEXT NOT NULL REFERENCES dim_data_sources(pk_source_id),
    fk_date_id TEXT NOT NULL REFERENCES dim_date(pk_date_id),
    update_type TEXT CHECK (update_type IN ('pokemon', 'moves', 'rankings', 'tiers', 'gamemaster')),
    records_added INTEGER DEFAULT 0,
    records_modified INTEGER DEFAULT 0,
    records_skipped INTEGER DEFAULT 0,
    update_status TEXT CHECK (update_status IN ('pending', 'in_progress', 'completed', 'failed')),
    error_message TEXT,
    processing_duration REAL, -- seconds
    git_commit_hash TEXT,
    created_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_updates_source_status
    ON fact_data_updates(fk_source_id, update_status, created_at DESC);
"""

# (id, name, color, generation)
POKEMON_TYPES: list[tuple[str, str, str, int]] = [
    ("normal", "Normal", "#A8A878", 1),
    ("fire", "Fire", "#F08030", 1),
    ("water", "Water", "#6890F0", 1),
    ("electric", "Electric", "#F8D030", 1),
    ("grass", "Grass", "#78C850", 1),
    ("ice", "Ice", "#98D8D8", 1),
    ("fighting", "Fighting", "#C03028", 1),
    ("poison", "Poison", "#A040A0", 1),
    ("ground", "Ground", "#E0C068", 1),
    ("flying", "Flying", "#A890F0", 1),
    ("psychic", "Psychic", "#F85888", 1),
    ("bug", "Bug", "#A8B820", 1),
    ("rock", "Rock", "#B8A038", 1),
    ("ghost", "Ghost", "#705898", 1),
    ("dragon", "Dragon", "#7038F8", 1),
    ("dark", "Dark", "#705848", 2),
    ("steel", "Steel", "#B8B8D0", 2),
    ("fairy", "Fairy", "#EE99AC", 6),
]

# (id, name, cp_limit, category)
LEAGUES: list[tuple[str, str, int | None, str]] = [
    ("great", "Great League", 1500, "pvp"),
    ("ultra", "Ultra League", 2500, "pvp"),
    ("master", "Master League", None, "pvp"),
    ("little", "Little Cup", 500, "pvp"),
    ("premier_ultra", "Premier Ultra", 2500, "pvp"),
    ("premier_master", "Premier Master", None, "pvp"),
    ("raids", "Raids", None, "pve"),
    ("gyms", "Gyms", None, "pve"),
]

# (id, description)
BATTLE_SCENARIOS: list[tuple[str, str]] = [
    ("leads", "Opening Pokemon"),
    ("closers", "Finishing Pokemon"),
    ("switches", "Switch Pokemon"),
    ("chargers", "Charge Move Users"),
    ("attackers", "Attack Focused"),
    ("overall", "Overall Performance"),
]

SEED_STATEMENTS: list[tuple[str, list[tuple[object, ...]]]] = [
    (
        "INSERT OR IGNORE INTO dim_types "
        "(pk_type_id, type_name, type_color, generation_introduced) VALUES (?, ?, ?, ?)",
        list(POKEMON_TYPES),
    ),
    (
        "INSERT OR IGNORE INTO dim_leagues "
        "(pk_league_id, league_name, cp_limit, league_category, is_active) VALUES (?, ?, ?, ?, 1)",
        list(LEAGUES),
    ),
    (
        "INSERT OR IGNORE INTO dim_battle_scenarios "
        "(pk_scenario_id, scenario_name, scenario_description, scenario_category) "
        "VALUES (?, ?, ?, 'pvp')",
        [(sid, sid, desc) for sid, desc in BATTLE_SCENARIOS],
    ),
]
