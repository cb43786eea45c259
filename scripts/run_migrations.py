# run_migrations.py — Postgres migration runner for the SpaceCat API
import os
import sys
from pathlib import Path
import logging

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_db_version() -> int:
    """Current schema version; 0 on a fresh database."""
    from db_utils import execute, fetch_one
    execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
    result = fetch_one("SELECT MAX(version) AS version FROM schema_version")
    return result["version"] if result and result["version"] is not None else 0


def set_db_version(version: int):
    from db_utils import execute
    execute("INSERT INTO schema_version (version) VALUES (%s) ON CONFLICT (version) DO NOTHING", (version,))
    logger.info(f"Set schema version to {version}")


def split_statements(sql: str):
    """Statements of a migration file; `--` comment lines are dropped."""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [stmt.strip() for stmt in "\n".join(lines).split(';') if stmt.strip()]


def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """Apply all pending migrations in order; returns how many were applied."""
    from db_utils import execute

    current_version = get_db_version()
    logger.info(f"Current schema version: {current_version}")

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return 0

    applied_count = 0
    for migration_file in sorted(migrations_dir.glob("*.sql")):
        # "001_core_schema.sql" -> 1
        try:
            version = int(migration_file.stem.split('_')[0])
        except (ValueError, IndexError):
            logger.warning(f"Skipping invalid migration filename: {migration_file.name}")
            continue

        if version <= current_version:
            continue

        logger.info(f"Applying migration {migration_file.name} (version {version})...")
        try:
            for stmt in split_statements(migration_file.read_text()):
                execute(stmt)
            set_db_version(version)
        except Exception as e:
            logger.error(f"Failed to apply migration {migration_file.name}: {e}")
            print(f"✗ Failed migration {migration_file.name}: {e}")
            raise
        applied_count += 1
        print(f"✓ Applied migration {migration_file.name} (version {version})")

    if applied_count == 0:
        print("No new migrations to apply.")
    else:
        print(f"Migrations complete. Applied {applied_count} migration(s).")
    return applied_count


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    try:
        run_migrations()
    except Exception as e:
        logger.error(f"Migration runner failed: {e}", exc_info=True)
        sys.exit(1)
