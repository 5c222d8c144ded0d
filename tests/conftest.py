import os
from datetime import date
from decimal import Decimal

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.main import app
from app.models import ProductRotation, Signalement, SignalementStatus

@pytest.fixture
def engine():
    """Base SQLite en mémoire, partagée entre threads (TestClient)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """TestClient dont get_db renvoie la session de test"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_rotation(db_session):
    def _make(ean_code: str, monthly_rotation, unit_purchase_price=None) -> ProductRotation:
        rotation = ProductRotation(
            ean_code=ean_code,
            monthly_rotation=Decimal(str(monthly_rotation)),
            unit_purchase_price=Decimal(str(unit_purchase_price)) if unit_purchase_price is not None else None,
        )
        db_session.add(rotation)
        db_session.commit()
        db_session.refresh(rotation)
        return rotation
    return _make


@pytest.fixture
def make_signalement(db_session):
    """Signalement inséré sans calcul d'urgence"""
    def _make(product_code: str = "3400930000001", quantity: int = 10,
              expiration_date: date = date(2025, 6, 30),
              status: SignalementStatus = SignalementStatus.PENDING) -> Signalement:
        signalement = Signalement(
            product_code=product_code,
            quantity=quantity,
            expiration_date=expiration_date,
            status=status,
        )
        db_session.add(signalement)
        db_session.commit()
        db_session.refresh(signalement)
        return signalement
    return _make
