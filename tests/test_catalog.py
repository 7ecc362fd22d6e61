import uuid
from unittest.mock import MagicMock

import pytest
from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError

from roomsize.catalog import CatalogService, house_sort_key, parse_id
from roomsize.errors import UpstreamError
from roomsize.schemas import HouseSummary


def test_houses_are_verified_first_then_by_name_case_insensitively(client, catalog):
    response = client.get("/api/get-houses", params={"street_id": str(catalog.oak_lane.id)})

    assert response.status_code == 200
    data = response.json()
    assert [h["model_name"] for h in data["houses"]] == ["the Ashbourne", "alderley", "The Hatfield"]
    assert data["houses"][0]["verified"] is True
    assert data["total"] == 3
    assert data["street"] == {"street_name": "Oak Lane", "postcode": "CH64 3AB", "postcode_area": "CH64"}


def test_houses_success_response_has_no_error_keys(client, catalog):
    response = client.get("/api/get-houses", params={"street_id": str(catalog.oak_lane.id)})

    data = response.json()
    assert set(data) == {"houses", "street", "total"}
    # Nested nulls are part of the contract and stay
    assert "property_type" in data["houses"][0]


def test_houses_without_builder_get_default_name(client, catalog):
    response = client.get("/api/get-houses", params={"street_id": str(catalog.oak_lane.id)})

    builders = {h["model_name"]: h["builder_name"] for h in response.json()["houses"]}
    assert builders["alderley"] == "Unknown Builder"
    assert builders["The Hatfield"] == "Persimmon"


def test_houses_for_unknown_street_is_empty_with_null_street(client, catalog):
    response = client.get("/api/get-houses", params={"street_id": str(uuid.uuid4())})

    assert response.status_code == 200
    assert response.json()["houses"] == []
    assert response.json()["street"] is None


@pytest.mark.parametrize("params, message", [
    ({}, "street_id is required"),
    ({"street_id": "not-a-uuid"}, "Invalid street_id"),
])
def test_get_houses_rejects_bad_street_id(client, params, message):
    response = client.get("/api/get-houses", params=params)

    assert response.status_code == 400
    assert response.json()["error"] == message


def test_get_houses_logs_page_view(client, catalog, events):
    client.get("/api/get-houses", params={"street_id": str(catalog.oak_lane.id)})

    [event] = events("houses_page_view")
    assert event.event_data == {
        "street_id": str(catalog.oak_lane.id),
        "street_name": "Oak Lane",
        "houses_count": 3,
    }


def test_schema_rooms_are_ordered_by_floor_then_name(client, catalog):
    response = client.get("/api/get-schema", params={"schema_id": str(catalog.hatfield.id)})

    assert response.status_code == 200
    data = response.json()
    assert data["schema"]["model_name"] == "The Hatfield"
    assert data["schema"]["builder_name"] == "Persimmon"
    assert [(r["floor_level"], r["room_name"]) for r in data["rooms"]] == [
        (0, "Kitchen"),
        (0, "Lounge"),
        (1, "Bathroom"),
        (1, "Bedroom 1"),
    ]
    lounge = data["rooms"][1]
    assert lounge["floor_area_sqm"] == 14.0
    assert lounge["length_cm"] == 400


def test_get_schema_twice_is_idempotent_and_logs_two_views(client, catalog, events):
    params = {"schema_id": str(catalog.hatfield.id)}

    first = client.get("/api/get-schema", params=params)
    second = client.get("/api/get-schema", params=params)

    assert first.json() == second.json()
    views = events("schema_page_view")
    assert len(views) == 2
    assert views[0].event_data["rooms_count"] == 4
    assert views[0].event_data["model_name"] == "The Hatfield"


def test_get_schema_missing_id_is_400(client):
    response = client.get("/api/get-schema")

    assert response.status_code == 400
    assert response.json()["error"] == "schema_id is required"


@pytest.mark.parametrize("schema_id", [str(uuid.uuid4()), "not-a-uuid"])
def test_get_schema_unknown_is_404(client, catalog, schema_id):
    response = client.get("/api/get-schema", params={"schema_id": schema_id})

    assert response.status_code == 404
    assert response.json()["error"] == "Schema not found"


def test_schema_without_builder_gets_default_name(client, catalog):
    response = client.get("/api/get-schema", params={"schema_id": str(catalog.alderley.id)})

    assert response.json()["schema"]["builder_name"] == "Unknown Builder"
    assert response.json()["rooms"] == []


def test_schema_streets_lists_every_street_with_development(client, catalog):
    response = client.get("/api/schema-streets", params={"schema_id": str(catalog.hatfield.id)})

    assert response.status_code == 200
    streets = sorted(response.json()["streets"], key=lambda s: s["street_name"])
    assert [s["street_name"] for s in streets] == ["Elm Close", "Oak Lane"]
    assert {s["development_name"] for s in streets} == {"Kings Park"}
    assert streets[0]["postcode_area"] == "CH64"


def test_schema_streets_missing_id_is_400(client):
    response = client.get("/api/schema-streets")

    assert response.status_code == 400


def test_schema_streets_database_failure_is_500():
    db = MagicMock()
    db.query.side_effect = SQLAlchemyError("down")

    with pytest.raises(UpstreamError) as exc:
        CatalogService(db, MagicMock()).get_streets_for_schema(str(uuid.uuid4()))

    assert exc.value.message == "Failed to fetch streets"


def test_houses_junction_failure_returns_error_shaped_response():
    db = MagicMock()
    db.get.return_value = None
    db.query.side_effect = SQLAlchemyError("down")
    dispatcher = MagicMock()

    result = CatalogService(db, dispatcher).get_houses_for_street(str(uuid.uuid4()), BackgroundTasks())

    assert result.error == "Failed to load house types"
    assert result.houses == []
    assert result.model_dump()["details"] == "down"
    dispatcher.dispatch.assert_not_called()


def test_house_sort_key():
    houses = [
        HouseSummary(schema_id="1", model_name="Zeta", builder_name="B"),
        HouseSummary(schema_id="2", model_name="alpha", builder_name="B"),
        HouseSummary(schema_id="3", model_name="Mu", builder_name="B", verified=True),
    ]

    assert [h.model_name for h in sorted(houses, key=house_sort_key)] == ["Mu", "alpha", "Zeta"]


def test_parse_id():
    value = uuid.uuid4()
    assert parse_id(f" {value} ") == value
    assert parse_id("nope") is None
