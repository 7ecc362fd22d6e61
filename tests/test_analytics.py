from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import Text
from sqlalchemy.exc import SQLAlchemyError

from roomsize.analytics import ALL_TIME_START, AnalyticsService, period_start, top_values
from roomsize.events import AnalyticsDispatcher, PostcodeSearched, parse_event_data
from roomsize.models import AnalyticsEvent, MailingListEntry, ProblemReport, SchemaRequest


def _event(db, event_type, data, days_ago=0):
    db.add(AnalyticsEvent(
        event_type=event_type,
        event_data=data,
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
    ))


def _stats(client, **params):
    return client.get("/api/admin/stats", params={"key": client.app.state.config.admin_key, **params})


# Ingestion


def test_log_event_stores_payload_and_user_agent(client, events):
    response = client.post(
        "/api/analytics",
        json={
            "event_type": "room_viewed",
            "event_data": {"room_name": "Kitchen", "schema_id": "abc", "extra": 1},
            "page_url": "/rooms?schema_id=abc",
        },
        headers={"User-Agent": "pytest-agent"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}

    [event] = events("room_viewed")
    assert event.event_data == {"room_name": "Kitchen", "schema_id": "abc", "extra": 1}
    assert event.page_url == "/rooms?schema_id=abc"
    assert event.user_agent == "pytest-agent"


def test_log_event_defaults_event_data(client, events):
    client.post("/api/analytics", json={"event_type": "landing_page_view"})

    [event] = events("landing_page_view")
    assert event.event_data == {}


def test_unknown_event_types_are_accepted(client, events):
    response = client.post("/api/analytics", json={"event_type": "share_clicked", "event_data": {"to": "x"}})

    assert response.status_code == 200
    assert len(events("share_clicked")) == 1


def test_long_event_type_is_stored(client, events):
    event_type = "campaign_" + "x" * 120

    response = client.post("/api/analytics", json={"event_type": event_type})

    assert response.status_code == 200
    assert len(events(event_type)) == 1
    assert isinstance(AnalyticsEvent.__table__.c.event_type.type, Text)


def test_log_event_requires_event_type(client):
    response = client.post("/api/analytics", json={"event_data": {}})

    assert response.status_code == 400
    assert response.json() == {"error": "event_type is required"}


@pytest.mark.parametrize("event_type,event_data", [
    ("houses_page_view", {"street_id": "x"}),
    ("search", {"query": 123}),
    ("page_view", ["a"]),
    ("postcode_searched", {"query": "CH64", "results_count": "lots"}),
])
def test_log_event_stores_payloads_that_do_not_fit_their_model(client, events, event_type, event_data):
    response = client.post("/api/analytics", json={"event_type": event_type, "event_data": event_data})

    assert response.status_code == 200
    assert response.json() == {"success": True}

    [event] = events(event_type)
    assert event.event_data == event_data


def test_parse_event_data_keeps_extra_keys():
    payload = parse_event_data("search", {"query": "CH64", "source": "hero"})

    assert payload.query == "CH64"
    assert payload.model_dump()["source"] == "hero"


def test_parse_event_data_returns_none_for_mismatched_payload(caplog):
    with caplog.at_level("WARNING", logger="roomsize.events"):
        assert parse_event_data("schema_page_view", {"schema_id": "abc"}) is None
        assert parse_event_data("page_view", ["a"]) is None

    assert "does not match SchemaPageView" in caplog.text


# Dispatcher


def test_dispatch_queues_write_for_after_the_response():
    dispatcher = AnalyticsDispatcher(MagicMock())
    background = BackgroundTasks()

    dispatcher.dispatch(background, PostcodeSearched(query="CH64", results_count=2))

    [task] = background.tasks
    assert task.func == dispatcher.write
    assert task.args[:2] == ("postcode_searched", {"query": "CH64", "results_count": 2})


def test_dispatcher_write_failure_is_logged_and_dropped(caplog):
    session = MagicMock()
    session.__enter__.return_value = session
    session.commit.side_effect = SQLAlchemyError("down")
    dispatcher = AnalyticsDispatcher(lambda: session)

    dispatcher.write("postcode_searched", {"query": "CH64"})

    assert "Dropped analytics event postcode_searched" in caplog.text


def test_dispatcher_writes_with_its_own_session(session_factory, db):
    AnalyticsDispatcher(session_factory).write("page_view", {"page": "home"}, "/", "agent")

    [event] = db.query(AnalyticsEvent).all()
    assert event.event_type == "page_view"
    assert event.user_agent == "agent"


# Admin report


def test_admin_stats_wrong_key_is_401(client):
    response = client.get("/api/admin/stats", params={"key": "guess"})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_admin_stats_missing_key_is_401(client):
    assert client.get("/api/admin/stats").status_code == 401


def test_seven_day_window_excludes_older_events(client, db):
    _event(db, "search", {"query": "CH64"}, days_ago=6)
    _event(db, "search", {"query": "L1"}, days_ago=8)
    db.commit()

    data = _stats(client, period="7d").json()

    assert data["period"] == "7d"
    assert data["stats"]["totalSearches"] == 1
    assert data["topPostcodes"] == [{"postcode": "CH64", "count": 1}]


def test_period_defaults_to_seven_days(client, db):
    _event(db, "search", {"query": "L1"}, days_ago=20)
    db.commit()

    data = _stats(client).json()

    assert data["period"] == "7d"
    assert data["stats"]["totalSearches"] == 0


def test_thirty_day_and_all_time_windows(client, db):
    _event(db, "search", {"query": "L1"}, days_ago=20)
    _event(db, "search", {"query": "L1"}, days_ago=400)
    db.commit()

    assert _stats(client, period="30d").json()["stats"]["totalSearches"] == 1
    assert _stats(client, period="all").json()["stats"]["totalSearches"] == 2
    assert _stats(client, period="90d").json()["stats"]["totalSearches"] == 2


def test_admin_stats_counts_and_leaderboards(client, db):
    for query in ["ch64", "CH64", "l1"]:
        _event(db, "search", {"query": query})
    _event(db, "search", {})
    _event(db, "page_view", {"page": "home"})
    _event(db, "schema_page_view", {"schema_id": "a", "model_name": "The Hatfield", "rooms_count": 4})
    _event(db, "room_expanded", {"room_name": "Kitchen"})
    _event(db, "room_expanded", {"room_name": ""})
    _event(db, "reason_submitted", {"reason": "Decorating"})
    db.add(SchemaRequest(postcode="CH64 3AB", house_type="Birch Way", builder_name="Unknown"))
    db.add(ProblemReport(builder_name="Persimmon", house_type="The Hatfield", problem_description="Kitchen is wrong"))
    db.add(MailingListEntry(email="me@example.com"))
    db.commit()

    data = _stats(client, period="7d").json()

    assert data["stats"] == {
        "totalSearches": 4,
        "uniquePostcodes": 2,
        "totalPageViews": 1,
        "totalSchemaViews": 1,
        "totalRoomViews": 2,
        "waitlistSignups": 1,
        "schemaRequestsCount": 1,
        "problemReportsCount": 1,
    }
    assert data["topPostcodes"][0] == {"postcode": "CH64", "count": 2}
    assert data["topHouseTypes"] == [{"model": "The Hatfield", "count": 1}]
    assert data["topRooms"] == [{"room": "Kitchen", "count": 1}]
    assert data["topReasons"] == [{"reason": "Decorating", "count": 1}]
    assert data["schemaRequests"][0]["postcode"] == "CH64 3AB"
    assert data["problemReports"][0]["house_type"] == "The Hatfield"
    assert data["waitlist"][0]["email"] == "me@example.com"


def test_failed_fetch_degrades_to_empty_lists(config):
    db = MagicMock()
    db.query.side_effect = SQLAlchemyError("down")

    report = AnalyticsService(db, config).report(config.admin_key, "all")

    assert report.stats.total_searches == 0
    assert report.schema_requests == []
    assert report.waitlist == []


# Aggregation helpers


def test_top_values_orders_by_count_then_first_seen():
    events = [SimpleNamespace(event_data={"room_name": name}) for name in
              ["Lounge", "Kitchen", "Kitchen", "Study", "Lounge", "Hall"]]

    ranked = top_values(events, "room_name", "room")

    assert ranked == [
        {"room": "Lounge", "count": 2},
        {"room": "Kitchen", "count": 2},
        {"room": "Study", "count": 1},
        {"room": "Hall", "count": 1},
    ]


def test_top_values_limit_and_malformed_payloads():
    events = [SimpleNamespace(event_data={"reason": f"r{i}"}) for i in range(12)]
    events.append(SimpleNamespace(event_data=None))
    events.append(SimpleNamespace(event_data={"reason": 5}))

    assert len(top_values(events, "reason", "reason")) == 10
    assert len(top_values(events, "reason", "reason", limit=None)) == 12


def test_period_start():
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)

    assert period_start("7d", now) == datetime(2026, 3, 3, tzinfo=timezone.utc)
    assert period_start("30d", now) == datetime(2026, 2, 8, tzinfo=timezone.utc)
    assert period_start("all", now) == ALL_TIME_START
    assert period_start("bogus", now) == ALL_TIME_START
