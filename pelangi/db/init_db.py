from pelangi.core.config import settings
from pelangi.db.base import Base
from pelangi.db.session import SessionLocal, engine
from pelangi.services.levels import seed_default_levels


def init_db() -> None:
    Base.metadata.create_all(bind=engine)

    if settings.SEED_DEFAULT_LEVELS:
        db = SessionLocal()
        try:
            seed_default_levels(db)
        finally:
            db.close()
