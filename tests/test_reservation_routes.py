import pytest
from sqlalchemy.exc import SQLAlchemyError

import routes.reservations as reservation_routes
import utils.audit
from scheduling.resolver import OverlapVerdict

NINE = "2030-01-07T09:00:00Z"
NINE_THIRTY = "2030-01-07T09:30:00Z"
TEN = "2030-01-07T10:00:00Z"
TEN_THIRTY = "2030-01-07T10:30:00Z"
ELEVEN = "2030-01-07T11:00:00Z"


def book(client, headers, start, end, resource="rijhal-binnen", purpose="TRAINING", **extra):
    body = {"resource_id": resource, "start_time": start, "end_time": end, "purpose": purpose}
    body.update(extra)
    return client.post("/reservations", json=body, headers=headers)


def check(client, headers, start, end, resource="rijhal-binnen", **params):
    query = {"resource_id": resource, "start": start, "end": end}
    query.update(params)
    return client.get("/reservations/check-overlaps", query_string=query, headers=headers)


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_requires_identity(client):
    assert book(client, {}, NINE, TEN).status_code == 401
    assert check(client, {"X-User-Id": "abc"}, NINE, TEN).status_code == 401


def test_inactive_user_is_anonymous(client, make_user, auth):
    blocked = make_user("Oud Lid", active=False)
    assert book(client, auth(blocked), NINE, TEN).status_code == 401


def test_hall_booking_flow(client, member, other_member, auth):
    assert check(client, auth(member), NINE, TEN).get_json()["has_conflict"] is False

    resp = book(client, auth(member), NINE, TEN)
    assert resp.status_code == 201
    first = resp.get_json()["reservation"]
    assert first["status"] == "CONFIRMED"
    assert first["start_time"] == NINE
    assert first["resource"]["slug"] == "rijhal-binnen"

    overlap = check(client, auth(other_member), NINE_THIRTY, TEN_THIRTY).get_json()
    assert overlap["has_conflict"] is True
    assert [r["id"] for r in overlap["conflicting_reservations"]] == [first["id"]]
    assert overlap["conflicting_reservations"][0]["requester_name"] == "Anna de Vries"

    assert check(client, auth(other_member), TEN, ELEVEN).get_json()["has_conflict"] is False
    assert book(client, auth(other_member), TEN, ELEVEN).status_code == 201


def test_overlapping_booking_is_refused(client, member, other_member, auth):
    book(client, auth(member), NINE, TEN)
    resp = book(client, auth(other_member), NINE_THIRTY, TEN_THIRTY)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "CONFLICT"
    assert len(body["conflicting_reservations"]) == 1


def test_inverted_interval_is_400(client, member, auth):
    resp = book(client, auth(member), TEN, NINE)
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "INVALID_INTERVAL"

    resp = check(client, auth(member), TEN, TEN)
    assert resp.status_code == 400


def test_naive_timestamp_is_400(client, member, auth):
    resp = book(client, auth(member), "2030-01-07T09:00:00", TEN)
    assert resp.status_code == 400
    assert "offset" in resp.get_json()["error"]


def test_offsets_are_accepted(client, member, auth):
    resp = book(client, auth(member), "2030-01-07T10:00:00+01:00", "2030-01-07T11:00:00+01:00")
    assert resp.status_code == 201
    assert resp.get_json()["reservation"]["start_time"] == NINE


@pytest.mark.parametrize("field,value", [("purpose", "DRESSAGE"), ("notes", "x" * 501)])
def test_invalid_fields_are_400(client, member, auth, field, value):
    body = {"purpose": "TRAINING"}
    body[field] = value
    resp = book(client, auth(member), NINE, TEN, **body)
    assert resp.status_code == 400


def test_unknown_resource(client, member, auth):
    assert book(client, auth(member), NINE, TEN, resource="buitenbak").status_code == 404
    body = check(client, auth(member), NINE, TEN, resource="buitenbak").get_json()
    assert body["has_conflict"] is False


def test_inactive_resource_is_422(client, member, admin, hall_id, auth):
    client.patch(f"/resources/{hall_id}", json={"is_active": False}, headers=auth(admin))
    resp = book(client, auth(member), NINE, TEN)
    assert resp.status_code == 422
    assert resp.get_json()["code"] == "RESOURCE_INACTIVE"


def test_cancel_frees_the_slot(client, member, other_member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]

    resp = client.post(f"/reservations/{rid}/cancel", json={"reason": "Paard kreupel"}, headers=auth(member))
    assert resp.status_code == 200
    cancelled = resp.get_json()["reservation"]
    assert cancelled["status"] == "CANCELLED"
    assert cancelled["cancel_reason"] == "Paard kreupel"
    assert cancelled["cancelled_at"].endswith("Z")

    assert check(client, auth(other_member), NINE, TEN).get_json()["has_conflict"] is False
    assert book(client, auth(other_member), NINE, TEN).status_code == 201


def test_cancel_twice_is_409(client, member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    assert client.delete(f"/reservations/{rid}", headers=auth(member)).status_code == 200

    resp = client.delete(f"/reservations/{rid}", headers=auth(member))
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "INVALID_TRANSITION"


def test_default_cancel_reasons(client, member, admin, auth):
    own = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    other = book(client, auth(member), TEN, ELEVEN).get_json()["reservation"]["id"]

    mine = client.delete(f"/reservations/{own}", headers=auth(member)).get_json()["reservation"]
    theirs = client.post(f"/reservations/{other}/cancel", headers=auth(admin)).get_json()["reservation"]
    assert mine["cancel_reason"] == "Cancelled by user"
    assert theirs["cancel_reason"] == "Cancelled by administrator"


def test_members_cannot_touch_each_others_bookings(client, member, other_member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    assert client.get(f"/reservations/{rid}", headers=auth(other_member)).status_code == 403
    assert client.post(f"/reservations/{rid}/cancel", headers=auth(other_member)).status_code == 403
    assert client.patch(f"/reservations/{rid}", json={"notes": "x"}, headers=auth(other_member)).status_code == 403


def test_missing_reservation_is_404(client, member, auth):
    assert client.get("/reservations/4242", headers=auth(member)).status_code == 404


def test_reschedule_over_own_slot(client, member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]

    # the move overlaps the booking's own old slot, which must not count
    assert check(client, auth(member), NINE_THIRTY, TEN_THIRTY, exclude_id=rid).get_json()["has_conflict"] is False

    resp = client.patch(
        f"/reservations/{rid}",
        json={"start_time": NINE_THIRTY, "end_time": TEN_THIRTY, "notes": "Springles"},
        headers=auth(member),
    )
    assert resp.status_code == 200
    body = resp.get_json()["reservation"]
    assert body["start_time"] == NINE_THIRTY
    assert body["notes"] == "Springles"


def test_reschedule_into_conflict_is_409(client, member, other_member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    book(client, auth(other_member), TEN, ELEVEN)

    resp = client.patch(f"/reservations/{rid}", json={"end_time": TEN_THIRTY}, headers=auth(member))
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "CONFLICT"

    unchanged = client.get(f"/reservations/{rid}", headers=auth(member)).get_json()["reservation"]
    assert unchanged["end_time"] == TEN


def test_cancelled_reservation_cannot_be_edited(client, member, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    client.delete(f"/reservations/{rid}", headers=auth(member))
    resp = client.patch(f"/reservations/{rid}", json={"notes": "toch"}, headers=auth(member))
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "RESERVATION_CANCELLED"


def test_my_reservations(client, member, other_member, auth):
    keep = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]
    drop = book(client, auth(member), TEN, ELEVEN).get_json()["reservation"]["id"]
    book(client, auth(other_member), "2030-01-08T09:00:00Z", "2030-01-08T10:00:00Z")
    client.delete(f"/reservations/{drop}", headers=auth(member))

    active = client.get("/reservations/me", headers=auth(member)).get_json()["reservations"]
    assert [r["id"] for r in active] == [keep]

    history = client.get("/reservations/me?history=1", headers=auth(member)).get_json()["reservations"]
    assert {r["id"] for r in history} == {keep, drop}


def test_calendar_hides_other_members_notes(client, member, other_member, auth):
    book(client, auth(member), NINE, TEN, notes="Dressuurproef oefenen")

    resp = client.get(
        "/reservations/calendar",
        query_string={"resource_id": "rijhal-binnen", "start": "2030-01-07T00:00:00Z", "end": "2030-01-08T00:00:00Z"},
        headers=auth(other_member),
    )
    assert resp.status_code == 200
    [entry] = resp.get_json()["reservations"]
    assert entry["requester_name"] == "Anna de Vries"
    assert entry["is_own"] is False
    assert entry["notes"] is None

    own = client.get(
        "/reservations/calendar",
        query_string={"resource_id": "rijhal-binnen", "start": "2030-01-07T00:00:00Z", "end": "2030-01-08T00:00:00Z"},
        headers=auth(member),
    ).get_json()["reservations"][0]
    assert own["notes"] == "Dressuurproef oefenen"


def test_calendar_range_is_capped(client, member, auth):
    resp = client.get(
        "/reservations/calendar",
        query_string={"resource_id": "rijhal-binnen", "start": "2030-01-01T00:00:00Z", "end": "2030-06-01T00:00:00Z"},
        headers=auth(member),
    )
    assert resp.status_code == 400


def test_lost_race_is_retryable_409(client, member, other_member, auth, monkeypatch):
    book(client, auth(member), NINE, TEN)

    class BlindResolver:
        def check_overlaps(self, *args, **kwargs):
            return OverlapVerdict()

    # simulate a writer whose advisory check ran before the first booking committed
    monkeypatch.setattr(reservation_routes, "conflict_resolver", lambda: BlindResolver())

    resp = book(client, auth(other_member), NINE_THIRTY, TEN_THIRTY)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "WRITE_CONFLICT"
    assert body["retryable"] is True
    assert len(body["conflicting_reservations"]) == 1

    mine = client.get("/reservations/me", headers=auth(other_member)).get_json()["reservations"]
    assert mine == []


def test_create_is_audited(client, member, admin, auth):
    rid = book(client, auth(member), NINE, TEN).get_json()["reservation"]["id"]

    history = client.get(f"/admin/audit-logs/Reservation/{rid}", headers=auth(admin)).get_json()["history"]
    assert [h["action"] for h in history] == ["CREATE"]
    assert history[0]["user_id"] == member
    assert history[0]["changes"]["start_time"] == NINE


def test_audit_failure_does_not_fail_the_booking(client, member, auth, monkeypatch):
    def broken(**kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(utils.audit, "AuditLog", broken)

    resp = book(client, auth(member), NINE, TEN)
    assert resp.status_code == 201
    assert client.get("/reservations/me", headers=auth(member)).get_json()["reservations"]


def test_last_representable_day_is_checked_not_crashed(client, member, auth):
    resp = check(client, auth(member), "9999-12-31T22:00:00Z", "9999-12-31T23:00:00Z")
    assert resp.status_code == 200
    assert resp.get_json()["has_conflict"] is False


def test_instant_before_the_first_representable_day_is_400(client, member, auth):
    resp = check(client, auth(member), "0001-01-01T00:10:00+01:00", "0001-01-01T02:00:00+01:00")
    assert resp.status_code == 400
    assert "Invalid start" in resp.get_json()["error"]
