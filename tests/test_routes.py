# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import timedelta

from diehard.app.services import raffle_settlement_service

from .helpers import balance_of

ADMIN = {"X-Admin": "true", "X-User-Id": "1"}


def as_user(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["db"] is True
    assert resp.headers["x-request-id"]


async def test_request_id_is_echoed(client):
    resp = await client.get("/api/raffles", headers={"X-Request-ID": "abc123"})
    assert resp.headers["x-request-id"] == "abc123"


async def test_list_active_raffles_with_etag(client, make_raffle):
    rid = await make_raffle(title="Scarf")

    resp = await client.get("/api/raffles")

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["items"][0]["id"] == rid
    assert resp.headers["etag"]


async def test_purchase_flow_over_http(client, db, make_user, make_raffle):
    uid = await make_user("alice", balance=100)
    rid = await make_raffle(ticket_price=10, max_tickets_per_user=5)

    resp = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 3}, headers=as_user(uid))

    assert resp.status_code == 200
    body = resp.json()
    assert [t["ticket_number"] for t in body["tickets"]] == [1, 2, 3]
    assert body["total_cost"] == 30
    assert body["new_balance"] == 70
    assert await balance_of(db, uid) == 70

    detail = await client.get(f"/api/raffles/{rid}", headers=as_user(uid))
    assert detail.json()["my_ticket_count"] == 3

    mine = await client.get("/api/raffles/my-tickets", headers=as_user(uid))
    assert mine.status_code == 200
    assert mine.json()["total_tickets"] == 3


async def test_purchase_requires_user(client, make_raffle):
    rid = await make_raffle()
    resp = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 1})
    assert resp.status_code == 401
    assert resp.json()["error"] == "http_error"


async def test_my_tickets_requires_user(client):
    resp = await client.get("/api/raffles/my-tickets")
    assert resp.status_code == 401


async def test_purchase_errors_map_to_400(client, make_user, make_raffle):
    uid = await make_user("bob", balance=15)
    rid = await make_raffle(ticket_price=10, max_tickets_per_user=2)

    low = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 2}, headers=as_user(uid))
    over_cap = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 3}, headers=as_user(uid))
    zero = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 0}, headers=as_user(uid))
    bad_body = await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": "many"}, headers=as_user(uid))

    assert (low.status_code, low.json()["error"]) == (400, "insufficient_balance")
    assert (over_cap.status_code, over_cap.json()["error"]) == (400, "limit_exceeded")
    assert over_cap.json()["details"]["remaining"] == 2
    assert (zero.status_code, zero.json()["error"]) == (400, "validation_error")
    assert (bad_body.status_code, bad_body.json()["error"]) == (400, "validation_error")


async def test_invalid_and_missing_raffle_ids(client, make_user):
    uid = await make_user("carol", balance=10)

    bad = await client.get("/api/raffles/abc")
    negative = await client.post("/api/raffles/-4/purchase", json={"quantity": 1}, headers=as_user(uid))
    missing = await client.get("/api/raffles/999")

    assert (bad.status_code, bad.json()["error"]) == (400, "validation_error")
    assert negative.status_code == 400
    assert (missing.status_code, missing.json()["error"]) == (404, "not_found")


async def test_admin_routes_require_admin(client, make_raffle):
    rid = await make_raffle()
    assert (await client.get("/api/admin/raffles")).status_code == 403
    assert (await client.post(f"/api/admin/raffles/{rid}/draw", headers=as_user(5))).status_code == 403


async def test_admin_create_activate_draw(client, make_user, now):
    uid = await make_user("dana", balance=50)
    created = await client.post(
        "/api/admin/raffles",
        json={"title": "Pennant", "draw_date": (now + timedelta(days=2)).isoformat(), "ticket_price": 5},
        headers=ADMIN,
    )
    assert created.status_code == 201
    rid = created.json()["id"]
    assert created.json()["status"] == "draft"

    activated = await client.post(f"/api/admin/raffles/{rid}/activate", headers=ADMIN)
    assert activated.json()["status"] == "active"

    await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 2}, headers=as_user(uid))
    drawn = await client.post(f"/api/admin/raffles/{rid}/draw", headers=ADMIN)
    assert drawn.status_code == 200
    assert drawn.json()["outcome"] == "completed"
    assert drawn.json()["winner_id"] == uid

    again = await client.post(f"/api/admin/raffles/{rid}/draw", headers=ADMIN)
    assert again.status_code == 409
    assert again.json()["error"] == "raffle_already_completed"
    assert again.json()["message"] == "Raffle already completed"


async def test_admin_create_validation(client):
    resp = await client.post("/api/admin/raffles", json={"title": "No date"}, headers=ADMIN)
    assert (resp.status_code, resp.json()["error"]) == (400, "validation_error")


async def test_admin_update_and_delete(client, make_raffle):
    rid = await make_raffle(status="draft")

    updated = await client.put(f"/api/admin/raffles/{rid}", json={"ticket_price": 12}, headers=ADMIN)
    assert updated.status_code == 200
    assert updated.json()["ticket_price"] == 12

    terminal = await client.put(f"/api/admin/raffles/{rid}", json={"status": "completed"}, headers=ADMIN)
    assert terminal.status_code == 400

    deleted = await client.delete(f"/api/admin/raffles/{rid}", headers=ADMIN)
    assert deleted.json() == {"raffle_id": rid, "deleted": True}


async def test_admin_cancel_refunds(client, db, make_user, make_raffle):
    uid = await make_user("erin", balance=40)
    rid = await make_raffle(ticket_price=10)
    await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 3}, headers=as_user(uid))

    resp = await client.post(f"/api/admin/raffles/{rid}/cancel", headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json()["refunded"] == 1
    assert resp.json()["total_amount"] == 30
    assert await balance_of(db, uid) == 40

    again = await client.post(f"/api/admin/raffles/{rid}/cancel", headers=ADMIN)
    assert (again.status_code, again.json()["error"]) == (409, "raffle_already_cancelled")


async def test_admin_cancel_partial_failure_is_207(client, make_user, make_raffle, monkeypatch):
    a = await make_user("fay", balance=40)
    b = await make_user("gus", balance=40)
    rid = await make_raffle(ticket_price=10)
    await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 1}, headers=as_user(a))
    await client.post(f"/api/raffles/{rid}/purchase", json={"quantity": 2}, headers=as_user(b))

    real_credit = raffle_settlement_service.credit_coins

    async def flaky_credit(session, user_id, amount, **kwargs):
        if user_id == a:
            raise RuntimeError("ledger unavailable")
        return await real_credit(session, user_id, amount, **kwargs)

    monkeypatch.setattr(raffle_settlement_service, "credit_coins", flaky_credit)

    resp = await client.post(f"/api/admin/raffles/{rid}/cancel", headers=ADMIN)

    assert resp.status_code == 207
    body = resp.json()
    assert body["error"] == "partial_failure"
    assert body["details"]["refunded"] == 1
    assert body["details"]["failures"][0]["buyer_id"] == a

    detail = await client.get(f"/api/raffles/{rid}")
    assert detail.json()["raffle"]["status"] == "cancelled"


async def test_history_endpoint(client, make_raffle):
    rid = await make_raffle()
    await client.post(f"/api/admin/raffles/{rid}/draw", headers=ADMIN)

    resp = await client.get("/api/raffles/history", params={"limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["page"]["total"] == 1
    assert body["items"][0]["status"] == "cancelled"
