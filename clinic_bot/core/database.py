from sqlalchemy import create_engine, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from .config import settings

# Ensure we use 127.0.0.1 instead of localhost to avoid Windows/Docker resolution issues
db_url = settings.DATABASE_URL.replace("localhost", "127.0.0.1")

if db_url.startswith("sqlite"):
    # Local/test runs: one shared connection so every thread sees the same in-memory DB
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(db_url, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON anywhere else
JSONType = JSON().with_variant(JSONB(), "postgresql")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """
    Creates all tables defined in the metadata.
    This replaces Alembic for simple setups.
    """
    # Import models here to ensure they are registered with Base
    from clinic_bot.models.user import User  # noqa
    from clinic_bot.models.appointment import Appointment, Doctor  # noqa
    from clinic_bot.models.notification import Notification  # noqa
    from clinic_bot.models.conversation import WhatsAppConversation  # noqa
    from clinic_bot.models.message_log import WhatsAppMessage  # noqa
    from clinic_bot.models.scheduled_message import ScheduledMessage  # noqa

    # Configure the registry to resolve all relationships
    from sqlalchemy.orm import configure_mappers
    configure_mappers()

    Base.metadata.create_all(bind=engine)

def drop_db():
    """Drops every table. Used by the test suite."""
    Base.metadata.drop_all(bind=engine)
