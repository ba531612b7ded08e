from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from core.env import env_bool, env_first, load_env_file

load_env_file()

TEST_DATABASE_URL: Optional[str] = env_first(["TEST_DATABASE_URL"])
# DB_URL is the name used by the upload service deployment.
DATABASE_URL: Optional[str] = env_first(["DATABASE_URL", "DB_URL"]) or TEST_DATABASE_URL
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL (or DB_URL / TEST_DATABASE_URL) must be set.")

ALLOW_NON_POSTGRES = env_bool("DATABASE_ALLOW_NON_POSTGRES", False)
IS_POSTGRES = DATABASE_URL.lower().startswith("postgres")
if not IS_POSTGRES and not ALLOW_NON_POSTGRES:
    raise RuntimeError(f"DATABASE_URL must be a PostgreSQL DSN. Current value: {DATABASE_URL}")

# SQLAlchemy only accepts the "postgresql" scheme; hosted providers hand out "postgres://".
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://"):]

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""
