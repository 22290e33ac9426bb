BOOKING_PAYLOAD = {
    "client": {"name": "Ada Lovelace", "email": "ada@example.com", "phone": "555-0100"},
    "event_type": "WEDDING",
    "event_date": "2025-07-15",
    "event_time": "14:00:00",
    "location": "Grand Hall",
    "package_id": "pkg-wedding",
    "add_ons": [{"add_on_id": "addon-drone", "quantity": 1}],
    "equipment_rentals": [
        {
            "equipment_id": "eq-lighting",
            "rental_start_date": "2025-07-14",
            "rental_end_date": "2025-07-16",
        }
    ],
    "catering_orders": [{"catering_service_id": "cat-buffet", "quantity": 40}],
}


def test_booking_flow(client, clock):
    response = client.post("/bookings", json=BOOKING_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    booking_id = body["booking_id"]
    assert body["status"] == "PENDING"
    assert body["booking_number"] == "PH-2025-001"
    assert body["pricing"]["final_price"] == 13500
    assert body["equipment_rentals"][0]["rental_days"] == 3

    confirm_response = client.post(f"/bookings/{booking_id}/confirm")
    assert confirm_response.status_code == 200
    assert confirm_response.json()["status"] == "CONFIRMED"

    for payment_status in ("PARTIAL", "PAID"):
        pay_response = client.patch(
            f"/bookings/{booking_id}/payment-status",
            json={"payment_status": payment_status},
        )
        assert pay_response.status_code == 200
        assert pay_response.json()["payment_status"] == payment_status

    clock.set(clock.now.replace(year=2025, month=7, day=15, hour=14))
    assert client.post(f"/bookings/{booking_id}/start").json()["status"] == "IN_PROGRESS"

    clock.set(clock.now.replace(hour=22))
    complete_response = client.post(f"/bookings/{booking_id}/complete")
    assert complete_response.status_code == 200
    assert complete_response.json()["status"] == "COMPLETED"

    cancel_response = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "late"})
    assert cancel_response.status_code == 409
    assert cancel_response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"
    assert cancel_response.json()["detail"]["from_status"] == "COMPLETED"


def test_second_confirm_conflict_names_first_booking(client):
    first = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]
    second = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]

    assert client.post(f"/bookings/{first}/confirm").status_code == 200
    response = client.post(f"/bookings/{second}/confirm")

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "RESOURCE_CONFLICT"
    assert detail["conflicting_booking_ids"] == [first]
    assert client.get(f"/bookings/{second}").json()["status"] == "PENDING"


def test_catering_out_of_bounds_is_unprocessable(client):
    payload = {**BOOKING_PAYLOAD, "catering_orders": [{"catering_service_id": "cat-buffet", "quantity": 5}]}

    response = client.post("/bookings", json=payload)

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "QUANTITY_OUT_OF_BOUNDS"
    assert response.json()["detail"]["minimum"] == 10


def test_malformed_payload_is_rejected(client):
    payload = {**BOOKING_PAYLOAD, "duration_hours": 0}

    assert client.post("/bookings", json=payload).status_code == 422


def test_unknown_booking_is_not_found(client):
    response = client.get("/bookings/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "BOOKING_NOT_FOUND"


def test_cancel_without_body(client):
    booking_id = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]

    response = client.post(f"/bookings/{booking_id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancellation_reason"] is None


def test_illegal_payment_edge_is_conflict(client):
    booking_id = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]

    response = client.patch(
        f"/bookings/{booking_id}/payment-status",
        json={"payment_status": "PAID"},
    )

    assert response.status_code == 409


def test_premature_start_is_conflict(client):
    booking_id = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]
    client.post(f"/bookings/{booking_id}/confirm")

    response = client.post(f"/bookings/{booking_id}/start")

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "PREMATURE_TRANSITION"


def test_quote_and_availability(client):
    quote = client.post("/pricing/quote", json={**BOOKING_PAYLOAD, "discount_amount": 20000})
    assert quote.status_code == 200
    assert quote.json()["subtotal"] == 13500
    assert quote.json()["final_price"] == 0

    booking_id = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]
    client.post(f"/bookings/{booking_id}/confirm")

    availability = client.post(
        "/availability",
        json={
            "resources": [
                {
                    "kind": "PROVIDER_CALENDAR",
                    "start": "2025-07-15T20:00:00+00:00",
                    "end": "2025-07-15T23:00:00+00:00",
                }
            ]
        },
    )
    assert availability.status_code == 200
    assert availability.json() == {"available": False, "conflicting_booking_ids": [booking_id]}


def test_list_and_admin_notes(client):
    booking_id = client.post("/bookings", json=BOOKING_PAYLOAD).json()["booking_id"]

    notes = client.patch(
        f"/bookings/{booking_id}/admin-notes",
        json={"admin_notes": "Second shooter confirmed"},
    )
    assert notes.json()["admin_notes"] == "Second shooter confirmed"

    pending = client.get("/bookings", params={"status_filter": "PENDING"}).json()
    confirmed = client.get("/bookings", params={"status_filter": "CONFIRMED"}).json()
    assert [item["booking_id"] for item in pending] == [booking_id]
    assert confirmed == []


def test_outbox_routes_need_a_configured_outbox(client):
    assert client.get("/outbox/events").status_code == 503


def test_health(client):
    assert client.get("/health").status_code == 200
