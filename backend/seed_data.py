"""Seed database with demo data."""
import logging

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.repositories.sql import SqlAlchemyRepository
from app.sample_data import load_sample_data

logger = logging.getLogger(__name__)


def seed(bind=None, session_factory=None):
    """Create the tables if needed and load the demo fixture.

    Refuses to run against a database that already has users so a second run
    cannot duplicate the fixture.
    """
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    repo = SqlAlchemyRepository(session_factory or SessionLocal)
    if repo.get_all_users():
        logger.warning("Database already has users, skipping seed")
        return {}

    counts = load_sample_data(repo)
    print("✅ Seed completed")
    for name, count in counts.items():
        print(f"   {name}: {count}")
    return counts


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    seed()
