"""Registry of external data sources."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from ..data.models import SourceDescriptor, SourceKind
from ..exceptions import SourceNotFoundError
from ..utils import from_db, to_db

if TYPE_CHECKING:
    from ..config import Settings
    from ..data.database import GameDatabase

logger = logging.getLogger(__name__)

HOUR = 60 * 60


def default_sources() -> list[SourceDescriptor]:
    """Build the shipped source list (fresh objects on every call)."""
    return [
        SourceDescriptor(
            id="pvpoke-gamemaster",
            name="PvPoke GameMaster",
            kind=SourceKind.GAMEMASTER,
            repository="pvpoke/pvpoke",
            path="src/data/gamemaster.json",
            check_interval=6 * HOUR,
        ),
        SourceDescriptor(
            id="pvpoke-rankings",
            name="PvPoke Rankings",
            kind=SourceKind.RANKINGS,
            repository="pvpoke/pvpoke",
            path="src/data/rankings",
            check_interval=12 * HOUR,
        ),
        SourceDescriptor(
            id="pokemon-resources",
            name="Pokemon Resources",
            kind=SourceKind.TIERS,
            repository="mgrann03/pokemon-resources",
            path="pogo_pkm_tiers.json",
            branch="main",
            check_interval=24 * HOUR,
        ),
        # Script directory, not a tier document; registered so it can be enabled
        # once a converter exists for it.
        SourceDescriptor(
            id="dialgadex-data",
            name="Dialgadex Data",
            kind=SourceKind.TIERS,
            repository="mgrann03/dialgadex",
            path="scripts",
            branch="main",
            check_interval=24 * HOUR,
            is_active=False,
        ),
    ]


class SourceRegistry:
    """Mutable set of source descriptors owned by the update manager.

    Built once at startup and shared by reference with the scheduler, detector
    and processor, which update the descriptors' check/update state in place.
    """

    def __init__(self, sources: Iterable[SourceDescriptor] = ()) -> None:
        self._sources: dict[str, SourceDescriptor] = {}
        for source in sources:
            self.register(source)

    @classmethod
    def from_settings(cls, settings: Settings) -> SourceRegistry:
        """Default sources with the configured deactivations applied."""
        registry = cls(default_sources())
        for source_id in settings.disabled_sources:
            if source_id in registry:
                registry.get(source_id).is_active = False
            else:
                logger.warning("Ignoring unknown disabled source: %s", source_id)
        return registry

    def register(self, source: SourceDescriptor) -> None:
        if source.id in self._sources:
            raise ValueError(f"Duplicate data source id: {source.id}")
        self._sources[source.id] = source

    def get(self, source_id: str) -> SourceDescriptor:
        try:
            return self._sources[source_id]
        except KeyError:
            raise SourceNotFoundError(source_id) from None

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __iter__(self) -> Iterator[SourceDescriptor]:
        return iter(list(self._sources.values()))

    def __len__(self) -> int:
        return len(self._sources)

    def all(self) -> list[SourceDescriptor]:
        return list(self._sources.values())

    def active(self) -> list[SourceDescriptor]:
        return [source for source in self._sources.values() if source.is_active]

    def set_active(self, source_id: str, active: bool) -> SourceDescriptor:
        source = self.get(source_id)
        source.is_active = active
        return source

    # -------------------------------------------------------------------------
    # Persistence (dim_data_sources)
    # -------------------------------------------------------------------------

    async def persist(self, db: GameDatabase) -> None:
        """Upsert every source's static fields without touching its recorded state."""
        await db.transaction(
            [
                (
                    """
                    INSERT INTO dim_data_sources (
                        pk_source_id, source_name, source_type, repository_url,
                        file_path, branch, update_frequency, is_active
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(pk_source_id) DO UPDATE SET
                        source_name = excluded.source_name,
                        source_type = excluded.source_type,
                        repository_url = excluded.repository_url,
                        file_path = excluded.file_path,
                        branch = excluded.branch,
                        update_frequency = excluded.update_frequency,
                        is_active = excluded.is_active
                    """,
                    (
                        source.id,
                        source.name,
                        source.kind.value,
                        source.repository_url,
                        source.path,
                        source.branch,
                        source.check_interval / HOUR,
                        int(source.is_active),
                    ),
                )
                for source in self._sources.values()
            ]
        )

    async def load_state(self, db: GameDatabase) -> None:
        """Restore check/update timestamps and version markers saved by a previous run."""
        rows = await db.all(
            "SELECT pk_source_id, last_check_timestamp, last_update_timestamp, "
            "last_version_marker FROM dim_data_sources"
        )
        for row in rows:
            source = self._sources.get(row["pk_source_id"])
            if source is None:
                continue
            source.last_checked_at = from_db(row["last_check_timestamp"])
            source.last_updated_at = from_db(row["last_update_timestamp"])
            source.last_known_version_marker = row["last_version_marker"]

    async def save_active(self, db: GameDatabase, source: SourceDescriptor) -> None:
        await db.run(
            "UPDATE dim_data_sources SET is_active = ? WHERE pk_source_id = ?",
            (int(source.is_active), source.id),
        )

    async def save_check(self, db: GameDatabase, source: SourceDescriptor) -> None:
        await db.run(
            "UPDATE dim_data_sources SET last_check_timestamp = ? WHERE pk_source_id = ?",
            (to_db(source.last_checked_at), source.id),
        )

    async def save_update(self, db: GameDatabase, source: SourceDescriptor) -> None:
        await db.run(
            """
            UPDATE dim_data_sources
            SET last_update_timestamp = ?, last_version_marker = ?
            WHERE pk_source_id = ?
            """,
            (to_db(source.last_updated_at), source.last_known_version_marker, source.id),
        )
