import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guide_booking.core.security import create_access_token, hash_password
from guide_booking.db.base import Base, get_db
from guide_booking.db.init_db import init_db
from guide_booking.db.models.customer import Customer
from guide_booking.db.models.destination import Destination
from guide_booking.db.models.guide import Guide
from guide_booking.db.models.user import User
from guide_booking.main import app


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email, name, role="customer"):
    user = User(email=email, name=name, password_hash=hash_password("secret-pass"), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture()
def admin(db):
    return make_user(db, "admin@example.com", "Ada Admin", role="admin")


@pytest.fixture()
def customer_user(db):
    return make_user(db, "carol@example.com", "Carol Traveler")


@pytest.fixture()
def guide_user(db):
    return make_user(db, "gus@example.com", "Gus Guide", role="guide")


@pytest.fixture()
def customer(db, customer_user):
    c = Customer(name=customer_user.name, email=customer_user.email)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture()
def destination(db):
    d = Destination(name="Patagonia", country="Argentina", region="Santa Cruz")
    db.add(d)
    db.commit()
    db.refresh(d)
    return d


@pytest.fixture()
def guide(db, guide_user):
    g = Guide(name=guide_user.name, email=guide_user.email, bio="Glacier trekking")
    db.add(g)
    db.commit()
    db.refresh(g)
    return g


def booking_payload(destination_id, start="2024-03-01", end="2024-03-10", guide_id=None,
                    email="carol@example.com", name="Carol Traveler", **extra):
    payload = {
        "customer": {"name": name, "email": email},
        "destination": {"id": destination_id},
        "dates": {"start_date": start, "end_date": end},
        "travelers": {"adults": 2, "children": 0, "infants": 0},
        "payment": {"total_amount": 1200.0},
    }
    if guide_id is not None:
        payload["guide"] = {"id": guide_id}
    payload.update(extra)
    return payload
