"""
Database migration manager using yoyo-migrations.

This module applies, rolls back and reports the SQL migrations under
``./migrations`` against the configured PostgreSQL schema.
"""

import argparse
from typing import Optional

import structlog
from yoyo import get_backend, read_migrations
from yoyo.backends import DatabaseBackend

from logistics_api.logging import setup_logging
from logistics_api.settings import get_settings
from logistics_api.settings.database import DatabaseConfig

logger = structlog.get_logger(__name__)

DEFAULT_MIGRATIONS_DIR = "./migrations"


class MigrationManager:
    """
    Manages database migrations using yoyo-migrations.

    This class handles migration application, rollback, and status checking
    with proper error handling and logging.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        migrations_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize the migration manager.

        Args:
            config: Database configuration
            migrations_dir: Path to migrations directory. Defaults to ./migrations
        """
        self.migrations_dir = migrations_dir or DEFAULT_MIGRATIONS_DIR
        self.schema = config.SCHEMA
        self.database_url = config.get_database_url("postgresql+psycopg")
        self._backend: Optional[DatabaseBackend] = None

    def _get_backend(self) -> DatabaseBackend:
        """
        Get or create the yoyo database backend.

        Raises:
            Exception: If backend creation fails
        """
        if self._backend is None:
            database_url = self.database_url + f"?options=-csearch_path={self.schema}"
            try:
                logger.info("Creating yoyo database backend", schema=self.schema)
                self._backend = get_backend(database_url)
                logger.info("Database backend created successfully")
            except Exception as e:
                logger.error("Failed to create database backend", error=str(e))
                raise
        return self._backend

    def apply(self) -> int:
        """
        Apply all pending migrations.

        Returns:
            Number of migrations applied

        Raises:
            Exception: If a migration fails
        """
        backend = self._get_backend()
        migrations = read_migrations(self.migrations_dir)
        with backend.lock():
            pending = backend.to_apply(migrations)
            for migration in pending:
                try:
                    logger.info("Applying migration", migration=migration.id)
                    backend.apply_one(migration)
                except Exception as e:
                    logger.error(
                        "Failed to apply migration", migration=migration.id, error=str(e)
                    )
                    raise
        logger.info("Migrations applied", count=len(pending))
        return len(pending)

    def rollback(self, count: int = 1) -> int:
        """
        Roll back the most recently applied migrations.

        Args:
            count: How many migrations to roll back

        Returns:
            Number of migrations rolled back
        """
        backend = self._get_backend()
        migrations = read_migrations(self.migrations_dir)
        with backend.lock():
            to_rollback = list(backend.to_rollback(migrations))[:count]
            for migration in to_rollback:
                try:
                    logger.info("Rolling back migration", migration=migration.id)
                    backend.rollback_one(migration)
                except Exception as e:
                    logger.error(
                        "Failed to roll back migration", migration=migration.id, error=str(e)
                    )
                    raise
        logger.info("Migrations rolled back", count=len(to_rollback))
        return len(to_rollback)

    def status(self) -> dict[str, bool]:
        """Map of migration id to whether it has been applied."""
        backend = self._get_backend()
        migrations = read_migrations(self.migrations_dir)
        pending = {m.id for m in backend.to_apply(migrations)}
        return {m.id: m.id not in pending for m in migrations}


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Manage logistics database migrations")
    parser.add_argument(
        "command",
        choices=["apply", "rollback", "status"],
        nargs="?",
        default="apply",
    )
    parser.add_argument("--count", type=int, default=1, help="Migrations to roll back")
    parser.add_argument("--dir", default=DEFAULT_MIGRATIONS_DIR, help="Migrations directory")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings)
    manager = MigrationManager(settings.POSTGRES, args.dir)

    if args.command == "apply":
        manager.apply()
    elif args.command == "rollback":
        manager.rollback(args.count)
    else:
        for migration_id, applied in manager.status().items():
            logger.info("Migration status", migration=migration_id, applied=applied)


if __name__ == "__main__":
    main()
