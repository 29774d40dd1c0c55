# tests/integration/test_booking_flow.py

from datetime import timedelta


def _create_showtime(client, showtime_service, start_time):
    theater = client.post(
        "/theaters",
        json={
            "name": "Hall 1",
            "rows": 2,
            "columns": 3,
            "layout": [["normal", "vip", "normal"], ["couple", "couple", "empty"]],
        },
    )
    assert theater.status_code == 200

    movie_id = showtime_service.create_movie("Night Run", duration_minutes=100, movie_type="2D")
    response = client.post(
        "/showtimes",
        json={
            "movie_id": movie_id,
            "theater_id": theater.json()["id"],
            "start_time": start_time.isoformat(),
            "prices": {"normal": "50.00", "student": "40.00"},
        },
    )
    assert response.status_code == 200
    body = response.json()
    return body["id"], {seat["label"]: seat["id"] for seat in body["seats"]}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200


def test_booking_flow(client, showtime_service, clock):
    start_time = clock.now + timedelta(hours=3)
    showtime_id, seats = _create_showtime(client, showtime_service, start_time)

    response = client.post(
        "/orders",
        json={
            "user_id": "user1",
            "showtime_id": showtime_id,
            "seat_ids": [seats["A1"], seats["A2"]],
            "ticket_type": "normal",
        },
    )

    assert response.status_code == 200
    order_id = response.json()["id"]
    assert response.json()["status"] == "PENDING"
    assert response.json()["total_price"] == "110.00"

    pay_response = client.post(f"/orders/{order_id}/pay", json={"payment_method": "alipay"})
    assert pay_response.status_code == 200
    assert pay_response.json()["status"] == "PAID"

    seat_map = client.get(f"/showtimes/{showtime_id}/seats")
    assert seat_map.json()["available_count"] == 3

    clock.set(start_time - timedelta(minutes=40))
    early = client.post(f"/staff/staff1/orders/{order_id}/check")
    assert early.status_code == 409
    assert early.json()["detail"]["code"] == "TOO_EARLY"
    assert "showtime_start" in early.json()["detail"]

    clock.set(start_time - timedelta(minutes=20))
    checked = client.post(f"/staff/staff1/orders/{order_id}/check")
    assert checked.status_code == 200
    assert checked.json()["ticket_status"] == "USED"

    operations = client.get("/staff/staff1/operations")
    assert operations.status_code == 200
    assert operations.json()[0]["type"] == "CHECK"
    assert operations.json()[0]["details"]["seats"] == ["A1", "A2"]


def test_double_booking_conflict(client, showtime_service, clock):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))
    payload = {"user_id": "user1", "showtime_id": showtime_id, "seat_ids": [seats["B1"]]}

    assert client.post("/orders", json=payload).status_code == 200
    conflict = client.post("/orders", json={**payload, "user_id": "user2"})

    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "SEATS_UNAVAILABLE"


def test_error_statuses(client, showtime_service, clock):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))

    missing = client.get("/orders/does-not-exist")
    empty = client.post("/orders", json={"user_id": "u", "showtime_id": showtime_id, "seat_ids": []})
    bad_layout = client.post("/theaters", json={"name": "x", "rows": 1, "columns": 2, "layout": [["normal"]]})

    assert missing.status_code == 404
    assert empty.status_code == 400
    assert empty.json()["detail"]["code"] == "EMPTY_SELECTION"
    assert bad_layout.status_code == 400


def test_cancel_and_expire(client, showtime_service, clock):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))
    first = client.post("/orders", json={"user_id": "u1", "showtime_id": showtime_id, "seat_ids": [seats["A1"]]})
    second = client.post("/orders", json={"user_id": "u2", "showtime_id": showtime_id, "seat_ids": [seats["A3"]]})

    cancelled = client.post(f"/orders/{first.json()['id']}/cancel", json={"actor_id": "u1"})
    assert cancelled.json()["status"] == "CANCELLED"

    clock.advance(minutes=16)
    swept = client.post("/orders/expire-stale")
    assert swept.json() == {"expired": 1}

    expired = client.post(f"/orders/{second.json()['id']}/expire")
    assert expired.json()["status"] == "CANCELLED"


def test_staff_sale_refund_and_seat_change(client, showtime_service, clock):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))

    sold = client.post(
        "/staff/staff1/sell",
        json={"showtime_id": showtime_id, "seat_ids": [seats["A1"]], "payment_method": "cash"},
    )
    assert sold.status_code == 200
    order_id = sold.json()["id"]

    moved = client.post(f"/staff/staff1/orders/{order_id}/seats", json={"seat_ids": [seats["A3"]]})
    assert moved.json()["seat_labels"] == ["A3"]

    refunded = client.post(f"/staff/staff2/orders/{order_id}/refund", json={"reason": "customer request"})
    assert refunded.status_code == 200
    assert refunded.json()["status"] == "REFUNDED"
    assert refunded.json()["refund_amount"] == "50.00"

    all_operations = client.get("/staff/operations").json()
    assert [operation["type"] for operation in all_operations] == ["REFUND", "MODIFY", "SELL"]


def test_razorpay_checkout_and_verify(client, showtime_service, clock, gateway):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))
    order = client.post(
        "/orders",
        json={"user_id": "u1", "showtime_id": showtime_id, "seat_ids": [seats["A2"]]},
    ).json()

    checkout = client.post(f"/orders/{order['id']}/razorpay/checkout")
    assert checkout.status_code == 200
    assert checkout.json()["amount"] == 6000
    assert checkout.json()["provider_order_id"] == gateway.provider_order_id

    verify_payload = {
        "razorpay_order_id": gateway.provider_order_id,
        "razorpay_payment_id": "pay_001",
        "razorpay_signature": "forged",
    }
    rejected = client.post(f"/orders/{order['id']}/razorpay/verify", json=verify_payload)
    assert rejected.status_code == 400

    verify_payload["razorpay_signature"] = gateway.valid_signature
    verified = client.post(f"/orders/{order['id']}/razorpay/verify", json=verify_payload)
    assert verified.status_code == 200
    assert verified.json()["status"] == "PAID"
    assert verified.json()["payment_method"] == "razorpay"

    redelivered = client.post(f"/orders/{order['id']}/razorpay/verify", json=verify_payload)
    assert redelivered.status_code == 200
    assert redelivered.json()["status"] == "PAID"


def test_razorpay_checkout_after_payment_window(client, showtime_service, clock, gateway):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))
    order = client.post(
        "/orders",
        json={"user_id": "u1", "showtime_id": showtime_id, "seat_ids": [seats["A2"]]},
    ).json()

    clock.advance(minutes=20)
    checkout = client.post(f"/orders/{order['id']}/razorpay/checkout")

    assert checkout.status_code == 409
    assert checkout.json()["detail"]["code"] == "INVALID_TRANSITION"
    assert gateway.created == []
    assert client.get(f"/orders/{order['id']}").json()["status"] == "CANCELLED"


def test_staff_cancel_of_paid_order_refunds(client, showtime_service, clock):
    showtime_id, seats = _create_showtime(client, showtime_service, clock.now + timedelta(hours=3))
    order = client.post(
        "/orders",
        json={"user_id": "u1", "showtime_id": showtime_id, "seat_ids": [seats["A1"]]},
    ).json()
    client.post(f"/orders/{order['id']}/pay", json={"payment_method": "cash"})

    by_customer = client.post(f"/orders/{order['id']}/cancel", json={"actor_id": "u1"})
    assert by_customer.status_code == 409

    by_staff = client.post(f"/staff/staff1/orders/{order['id']}/cancel")
    assert by_staff.status_code == 200
    assert by_staff.json()["status"] == "REFUNDED"
    assert by_staff.json()["refund_reason"] == "cancelled by staff"
    assert [operation["type"] for operation in client.get("/staff/staff1/operations").json()] == ["REFUND"]


def test_invalid_showtime_rejected(client, showtime_service, clock):
    movie_id = showtime_service.create_movie("Night Run", duration_minutes=100)
    theater_id = showtime_service.create_theater("Hall 9", rows=2, columns=2)

    response = client.post(
        "/showtimes",
        json={
            "movie_id": movie_id,
            "theater_id": theater_id,
            "start_time": (clock.now + timedelta(hours=3)).isoformat(),
            "end_time": (clock.now + timedelta(hours=2)).isoformat(),
            "prices": {"normal": "50.00"},
        },
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_SHOWTIME"
