import io
import sys
from pathlib import Path

BACKEND_PATH = Path(__file__).resolve().parents[1]
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.models import Base
from app.database.db_service import get_db_service

USER_ID = "user_2abc"

STATEMENT_CSV = (
    "Izvod po računu;;;;;\n"
    "Datum knjiženja;Uplata/isplata;Iznos uplate;Iznos isplate;Opis plaćanja;Naziv primatelja\n"
    "01/12/2025;Uplata;100,00;;Plaća za studeni;Firma d.o.o.\n"
    "02/12/2025;Isplata;;45,50;LIDL HRVATSKA 123;Lidl\n"
    ";;;;;\n"
)


def make_csv(rows, delimiter=";"):
    """Encode rows (lists of cells) as a UTF-8 CSV statement."""
    return "\n".join(delimiter.join(str(cell) for cell in row) for row in rows).encode("utf-8")


def make_xlsx(rows):
    """Build an in-memory workbook with ``rows`` on the first sheet."""
    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def db(session):
    return get_db_service(session)


@pytest.fixture
def user_id(db, session):
    db.insert("users", {"id": USER_ID})
    session.commit()
    return USER_ID


@pytest.fixture
def client(engine):
    from fastapi.testclient import TestClient
    from app.main import app
    from app.database.postgres_db import get_db
    from app.api import import_statements

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    import_statements.limiter.reset()

    # Not used as a context manager: the lifespan would connect to DATABASE_URL
    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def anyio_backend():
    return "asyncio"
