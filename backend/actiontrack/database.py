from sqlmodel import SQLModel, create_engine, Session

from . import config

DATABASE_URL = config.DATABASE_URL

# Handle Postgres URL format for SQLAlchemy if needed (postgres:// -> postgresql://)
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

connect_args = {"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO, connect_args=connect_args, pool_pre_ping=True)

def init_db(bind=None):
    # Import models so their tables are registered on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)

def get_session():
    with Session(engine) as session:
        yield session
