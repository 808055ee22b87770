"""Database access module."""

from .base import BaseDatabase
from .manager import DatabaseManager, create_database
from .schema import BATTLE_SCENARIOS, LEAGUES, POKEMON_TYPES, SCHEMA_VERSION
from .store import GameDatabase, Statement

__all__ = [
    "BATTLE_SCENARIOS",
    "LEAGUES",
    "POKEMON_TYPES",
    "SCHEMA_VERSION",
    "BaseDatabase",
    "DatabaseManager",
    "GameDatabase",
    "Statement",
    "create_database",
]
