import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator, Iterable, List, Optional, Set

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from models.transfer import Transfer, TransferFile


@compiles(UUID, "sqlite")  # type: ignore[misc]
def _compile_uuid_sqlite(_element, _compiler, **_kw):  # pragma: no cover - sqlite compat
    return "CHAR(32)"


class FakeObjectStore:
    """In-memory bucket with delete-if-exists semantics."""

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self.objects: Set[str] = set(keys)
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}

    def fail_on(self, key: str, exc: Optional[Exception] = None) -> None:
        self.failures[key] = exc or RuntimeError(f"storage unavailable for {key}")

    def delete(self, key: str) -> None:
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        self.objects.discard(key)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def now() -> datetime:
    return datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def make_transfer(
    session_factory: Callable[[], Session],
    object_store: FakeObjectStore,
    now: datetime,
) -> Callable[..., uuid.UUID]:
    """Persist a transfer plus its files and upload their blobs to the fake store."""

    def _make(
        *paths: str,
        expires_in: timedelta = timedelta(hours=-1),
        deleted: bool = False,
        transfer_id: Optional[uuid.UUID] = None,
    ) -> uuid.UUID:
        tid = transfer_id or uuid.uuid4()
        created = now - timedelta(days=7)
        with session_factory() as session:
            session.add(
                Transfer(
                    id=tid,
                    token=uuid.uuid4().hex,
                    created_at=created,
                    updated_at=created,
                    expires_at=now + expires_in,
                    deleted=deleted,
                    total_size=len(paths) * 100,
                )
            )
            for position, path in enumerate(paths):
                session.add(
                    TransferFile(
                        transfer_id=tid,
                        filename=path.rsplit("/", 1)[-1],
                        size=100,
                        path=path,
                        index=position,
                        created_at=created,
                        updated_at=created,
                        deleted=deleted,
                    )
                )
            session.commit()
        object_store.objects.update(paths)
        return tid

    return _make
