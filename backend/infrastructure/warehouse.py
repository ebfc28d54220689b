"""DuckDB-backed permanent store for committed preview rows and teams."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

import duckdb

from backend.core.schema import PreviewRow, Team
from backend.core.sql import quote_identifier

logger = logging.getLogger(__name__)

CREATE_TEAMS_TABLE = """
CREATE TABLE IF NOT EXISTS teams (
  id SMALLINT PRIMARY KEY,
  name TEXT NOT NULL,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

CREATE_PREVIEW_TABLE = """
CREATE TABLE IF NOT EXISTS preview (
  cod INTEGER NOT NULL,
  itens_periodo TEXT NOT NULL,
  segmentos TEXT NOT NULL,
  file_paths TEXT NOT NULL,
  sheet_name TEXT NOT NULL,
  team_name TEXT NOT NULL,
  dat_ref DATE NOT NULL,
  value DECIMAL(38, 10) NOT NULL,
  version SMALLINT NOT NULL,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

DEFAULT_TEAMS: tuple[Team, ...] = (
    Team(id=0, name="CFO"),
    Team(id=1, name="Creditos"),
    Team(id=2, name="Investimentos"),
)


class TeamDirectory(Protocol):
    """Lookup contract for the team identity service."""

    def get_team(self, team_id: int) -> Team | None: ...

    def list_teams(self) -> list[Team]: ...


def _rows_as_dicts(cursor: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
    columns = [item[0] for item in cursor.description or []]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


class Warehouse:
    """Owns the DuckDB connection; every operation works on its own cursor."""

    def __init__(self, location: str = ":memory:") -> None:
        self.location = location
        self._connection = duckdb.connect(location)

    def cursor(self) -> duckdb.DuckDBPyConnection:
        return self._connection.cursor()

    def initialise(self, teams: Iterable[Team] = DEFAULT_TEAMS) -> None:
        with self.cursor() as cur:
            cur.execute(CREATE_TEAMS_TABLE)
            cur.execute(CREATE_PREVIEW_TABLE)
            for team in teams:
                cur.execute(
                    "INSERT INTO teams (id, name) VALUES (?, ?) "
                    "ON CONFLICT (id) DO UPDATE SET name = excluded.name",
                    [team.id, team.name],
                )
        logger.info("Warehouse ready at %s", self.location)

    def close(self) -> None:
        self._connection.close()

    # ------------------------------------------------------------------
    # teams
    # ------------------------------------------------------------------
    def list_teams(self) -> list[Team]:
        with self.cursor() as cur:
            cur.execute("SELECT id, name FROM teams ORDER BY id")
            return [Team(id=row[0], name=row[1]) for row in cur.fetchall()]

    def get_team(self, team_id: int) -> Team | None:
        with self.cursor() as cur:
            cur.execute("SELECT id, name FROM teams WHERE id = ?", [team_id])
            row = cur.fetchone()
        return Team(id=row[0], name=row[1]) if row else None

    # ------------------------------------------------------------------
    # committed rows
    # ------------------------------------------------------------------
    def list_versions(self, team_name: str) -> list[dict[str, Any]]:
        with self.cursor() as cur:
            cur.execute(
                """
                SELECT version, COUNT(*) AS row_count, MAX(updated_at) AS updated_at
                  FROM preview
                 WHERE team_name = ?
                 GROUP BY version
                 ORDER BY version
                """,
                [team_name],
            )
            return _rows_as_dicts(cur)

    def fetch_preview(self, team_name: str, version: int | None = None) -> list[PreviewRow]:
        """Committed rows of a team, for one version or the latest one."""

        with self.cursor() as cur:
            if version is None:
                cur.execute(
                    """
                    SELECT * FROM preview
                     WHERE team_name = ?
                       AND version = (SELECT MAX(version) FROM preview WHERE team_name = ?)
                     ORDER BY sheet_name, cod, segmentos, dat_ref
                    """,
                    [team_name, team_name],
                )
            else:
                cur.execute(
                    """
                    SELECT * FROM preview
                     WHERE team_name = ? AND version = ?
                     ORDER BY sheet_name, cod, segmentos, dat_ref
                    """,
                    [team_name, version],
                )
            return [PreviewRow.model_validate(row) for row in _rows_as_dicts(cur)]

    def drop_table(self, table_name: str) -> None:
        with self.cursor() as cur:
            cur.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")


_warehouse: Warehouse | None = None


def configure_warehouse(warehouse: Warehouse) -> None:
    """Install the warehouse used by routes and workers, closing the previous one."""

    global _warehouse
    previous, _warehouse = _warehouse, warehouse
    if previous is not None and previous is not warehouse:
        previous.close()


def get_warehouse() -> Warehouse:
    global _warehouse
    if _warehouse is None:
        _warehouse = Warehouse()
        _warehouse.initialise()
    return _warehouse
