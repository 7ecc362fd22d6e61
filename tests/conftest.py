"""Shared fixtures: an in-memory SQLite catalog and a TestClient.

roomsize.database builds its module-level engine at import time, so the
environment is pointed at SQLite before anything from roomsize is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_KEY"] = "test-key"
os.environ["ROOMSIZE_ENV"] = "development"
os.environ.pop("LOGFIRE_TOKEN", None)

import uuid
from dataclasses import dataclass
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from roomsize.config import AppConfig
from roomsize.database import init_db, make_session_factory
from roomsize.main import create_app
from roomsize.models import (
    AnalyticsEvent,
    Builder,
    Development,
    HouseSchema,
    Room,
    Street,
    house_schema_streets,
)

ADMIN_KEY = "test-key"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def config(session_factory):
    return AppConfig(admin_key=ADMIN_KEY, session_factory=session_factory)


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as client:
        yield client


@dataclass
class Catalog:
    oak_lane: Street
    elm_close: Street
    station_road: Street
    hatfield: HouseSchema
    ashbourne: HouseSchema
    alderley: HouseSchema


@pytest.fixture
def catalog(db):
    """A small catalog.

    Kings Park (CH64): Oak Lane has three house types, one verified and one
    without a builder, plus a junction row pointing at a deleted schema.
    L1 Living: Station Road, which matches "L1" both by postcode and by
    development name.
    """
    kings_park = Development(name="Kings Park")
    l1_living = Development(name="L1 Living")
    oak_lane = Street(street_name="Oak Lane", postcode="CH64 3AB", postcode_area="CH64", development=kings_park)
    elm_close = Street(street_name="Elm Close", postcode="CH64 3CD", postcode_area="CH64", development=kings_park)
    station_road = Street(street_name="Station Road", postcode="L1 4XY", postcode_area="L1", development=l1_living)

    persimmon = Builder(name="Persimmon")
    hatfield = HouseSchema(
        builder=persimmon, model_name="The Hatfield", bedrooms=3,
        property_type="semi-detached", year_from=2019, year_to=2022,
    )
    ashbourne = HouseSchema(builder=persimmon, model_name="the Ashbourne", bedrooms=4, verified=True)
    alderley = HouseSchema(model_name="alderley", bedrooms=2)

    # Deliberately out of order: the service sorts by floor, then name
    hatfield.rooms = [
        Room(room_name="Bedroom 1", room_type="bedroom", floor_level=1, length_cm=380, width_cm=300),
        Room(room_name="Lounge", room_type="living room", floor_level=0, length_cm=400, width_cm=350,
             floor_area_sqm=Decimal("14.00")),
        Room(room_name="Bathroom", room_type="bathroom", floor_level=1, length_cm=210, width_cm=190,
             dimensions_need_verification=True, verification_reason="Measured from sales brochure"),
        Room(room_name="Kitchen", room_type="kitchen", floor_level=0, length_cm=330, width_cm=280),
    ]
    hatfield.streets = [oak_lane, elm_close]
    ashbourne.streets = [oak_lane]
    alderley.streets = [oak_lane]

    db.add_all([kings_park, l1_living, oak_lane, elm_close, station_road, persimmon, hatfield, ashbourne, alderley])
    db.commit()

    db.execute(house_schema_streets.insert().values(house_schema_id=uuid.uuid4(), street_id=oak_lane.id))
    db.commit()

    return Catalog(
        oak_lane=oak_lane,
        elm_close=elm_close,
        station_road=station_road,
        hatfield=hatfield,
        ashbourne=ashbourne,
        alderley=alderley,
    )


@pytest.fixture
def events(db):
    """Stored analytics events of one type, re-read from the database."""

    def _events(event_type: str) -> list[AnalyticsEvent]:
        db.expire_all()
        return db.query(AnalyticsEvent).filter(AnalyticsEvent.event_type == event_type).all()

    return _events
