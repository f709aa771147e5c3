"""Clean up test data from database."""

import logging
import sys

from gitops_db.infrastructure.postgres.config import DatabaseSettings
from gitops_db.infrastructure.postgres.database import ConnectionPool
from gitops_db.infrastructure.postgres.privileged_repository import PrivilegedQueries
from gitops_db.maintenance import DEFAULT_PREFIX, delete_rows_with_prefix

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    prefix = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_PREFIX
    logger.info(f"Cleaning up rows with prefix {prefix!r}")

    with ConnectionPool(settings=DatabaseSettings()) as pool:
        admin = PrivilegedQueries(pool, allow_unsafe=True)
        counts = delete_rows_with_prefix(admin, prefix)

    for table, rows in counts.items():
        logger.info(f"   Cleaned {table}: {rows} rows deleted")
    logger.info("Cleanup complete")


if __name__ == "__main__":
    main()
