from __future__ import annotations

from typing import Dict, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleettrack.database import Base, get_db
from fleettrack.dependencies import get_location_resolver
from fleettrack.main import app
from fleettrack.models import Coordinates


class StubResolver:
    """Resolver answering from a fixed table, recording every lookup."""

    def __init__(self, places: Optional[Dict[str, Coordinates]] = None) -> None:
        self.places = places or {}
        self.calls: List[str] = []

    def resolve(self, location: Optional[str]) -> Optional[Coordinates]:
        self.calls.append(location or "")
        return self.places.get(location or "")


@pytest.fixture()
def resolver() -> StubResolver:
    return StubResolver({"Lobito": Coordinates(lat=-12.3644, lng=13.5364)})


@pytest.fixture()
def client(resolver: StubResolver) -> Iterator[TestClient]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_location_resolver] = lambda: resolver
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
