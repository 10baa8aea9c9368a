import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger.auth import get_current_user
from ledger.db import Base, create_db_engine, get_db
from ledger.main import app
from ledger.models import Company, User


@pytest.fixture(autouse=True)
def override_auth(request):
    if request.node.get_closest_marker("real_auth"):
        yield
        return

    app.dependency_overrides[get_current_user] = lambda: User(
        id=1,
        company_id=1,
        email="admin@ledger.local",
        full_name="Test Admin",
        is_admin=True,
        is_active=True,
        role="ADMIN",
    )
    yield
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture()
def session_factory():
    engine = create_db_engine("sqlite+pysqlite://", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    with TestingSessionLocal() as db:
        db.add_all(
            [
                Company(id=1, name="Demo s.r.o.", base_currency="EUR", fiscal_year_start_month=1),
                Company(id=2, name="Other a.s.", base_currency="EUR", fiscal_year_start_month=1),
            ]
        )
        db.flush()
        db.add(User(id=1, company_id=1, email="admin@ledger.local", full_name="Test Admin", is_admin=True, role="ADMIN"))
        db.commit()

    yield TestingSessionLocal
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)
