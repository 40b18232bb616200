"""
HTTP tests for the route endpoints.
"""

from uuid import uuid4

from tests.conftest import PLANNED_DATE

BASE = "/api/v1/routes"
CANCEL_REASON = "Cliente solicitou o adiamento da entrega"


async def create_route(client, payload, **headers):
    response = await client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreate:
    async def test_create_route(self, client, route_payload):
        response = await client.post(BASE, json=route_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["status_code"] == 201
        route = body["data"]
        assert route["route_code"] == "RT-20240115-001"
        assert route["status"] == "PLANNED"
        assert route["type"] == "INTERSTATE"
        assert route["planned_date"] == PLANNED_DATE.isoformat()
        assert route["stops"] == []
        assert route["progress_percentage"] == 0

    async def test_driver_conflict(self, client, route_payload, add_vehicle):
        await create_route(client, route_payload())

        response = await client.post(
            BASE,
            json=route_payload(route_code="RT-20240115-002", vehicle_id=str(add_vehicle())),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["title"] == "Conflict"
        assert "RT-20240115-001" in body["detail"]
        assert body["errors"][0]["type"] == "RESOURCE_CONFLICT"
        assert body["errors"][0]["field"] == "driver_id"

    async def test_unknown_driver(self, client, route_payload):
        response = await client.post(BASE, json=route_payload(driver_id=str(uuid4())))
        assert response.status_code == 404
        assert response.json()["errors"][0]["resource"] == "driver"

    async def test_capacity_exceeded(self, client, route_payload):
        response = await client.post(BASE, json=route_payload(total_load_kg=1200))
        assert response.status_code == 400
        assert response.json()["errors"][0]["type"] == "BUSINESS_RULE_VIOLATION"

    async def test_schema_errors(self, client, route_payload):
        response = await client.post(
            BASE, json=route_payload(name="ab", difficulty_level=9)
        )

        assert response.status_code == 422
        body = response.json()
        assert body["title"] == "Validation Error"
        fields = {e["field"] for e in body["errors"]}
        assert "body.name" in fields
        assert "body.difficulty_level" in fields

    async def test_malformed_coordinates_are_accepted(self, client, route_payload):
        response = await client.post(
            BASE, json=route_payload(origin_coordinates="somewhere")
        )

        assert response.status_code == 201
        assert response.json()["estimated_distance_km"] == 0


class TestReadAndList:
    async def test_get_route(self, client, route_payload):
        created = await create_route(client, route_payload())

        response = await client.get(f"{BASE}/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == created["id"]

    async def test_unknown_route(self, client):
        response = await client.get(f"{BASE}/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["errors"][0]["type"] == "RESOURCE_NOT_FOUND"

    async def test_malformed_id(self, client):
        response = await client.get(f"{BASE}/not-a-uuid")
        assert response.status_code == 422

    async def test_list_envelope(self, client, route_payload, add_driver, add_vehicle):
        await create_route(client, route_payload())
        await create_route(
            client,
            route_payload(
                route_code="RT-20240115-002",
                driver_id=str(add_driver()),
                vehicle_id=str(add_vehicle()),
                type="URBAN",
            ),
        )

        response = await client.get(BASE, params={"type": "URBAN", "limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 1
        assert body["records_per_page"] == 5
        assert body["offset"] == 0
        assert body["data"][0]["route_code"] == "RT-20240115-002"

    async def test_list_rejects_inverted_dates(self, client):
        response = await client.get(
            BASE, params={"planned_date_from": "2024-02-01", "planned_date_to": "2024-01-01"}
        )
        assert response.status_code == 400

    async def test_list_rejects_large_limit(self, client):
        response = await client.get(BASE, params={"limit": 500})
        assert response.status_code == 422


class TestLifecycleEndpoints:
    async def test_start_and_invalid_transition(self, client, route_payload):
        created = await create_route(client, route_payload())

        started = await client.post(f"{BASE}/{created['id']}/start")
        assert started.status_code == 200
        assert started.json()["data"]["status"] == "IN_PROGRESS"

        again = await client.post(f"{BASE}/{created['id']}/start")
        assert again.status_code == 400
        assert again.json()["errors"][0]["field"] == "status"

    async def test_complete_with_body(self, client, route_payload):
        created = await create_route(client, route_payload())
        await client.post(f"{BASE}/{created['id']}/start")

        response = await client.post(
            f"{BASE}/{created['id']}/complete", json={"actual_distance_km": 362.5}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["actual_distance_km"] == 362.5
        assert data["actual_duration_minutes"] == 0

    async def test_complete_without_body(self, client, route_payload):
        created = await create_route(client, route_payload())
        await client.post(f"{BASE}/{created['id']}/start")

        response = await client.post(f"{BASE}/{created['id']}/complete")
        assert response.status_code == 200

    async def test_cancel_and_history(self, client, route_payload):
        created = await create_route(client, route_payload())

        cancelled = await client.post(
            f"{BASE}/{created['id']}/cancel", json={"reason": CANCEL_REASON}
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["cancellation_reason"] == CANCEL_REASON

        history = await client.get(f"{BASE}/{created['id']}/history")
        assert history.status_code == 200
        body = history.json()
        assert body["total_count"] == 2
        assert [e["event_type"] for e in body["data"]] == ["ROUTE_CREATED", "STATUS_CHANGED"]

    async def test_short_cancel_reason(self, client, route_payload):
        created = await create_route(client, route_payload())
        response = await client.post(f"{BASE}/{created['id']}/cancel", json={"reason": "curto"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "reason"

    async def test_update(self, client, route_payload):
        created = await create_route(client, route_payload())

        response = await client.patch(
            f"{BASE}/{created['id']}", json={"notes": "Entrada pela doca 3"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "Entrada pela doca 3"

    async def test_delete(self, client, route_payload):
        created = await create_route(client, route_payload())

        response = await client.delete(f"{BASE}/{created['id']}")
        assert response.status_code == 204
        assert response.content == b""

        missing = await client.get(f"{BASE}/{created['id']}")
        assert missing.status_code == 404

    async def test_delete_in_progress(self, client, route_payload):
        created = await create_route(client, route_payload())
        await client.post(f"{BASE}/{created['id']}/start")

        response = await client.delete(f"{BASE}/{created['id']}")
        assert response.status_code == 400
        assert response.json()["errors"][0]["type"] == "INVALID_OPERATION"

    async def test_stops_listing(self, client, route_payload):
        stops = [
            {"customer_address_id": str(uuid4()), "sequence_order": i, "address": f"Rua {i}, Centro"}
            for i in (2, 1)
        ]
        created = await create_route(client, route_payload(stops=stops))

        response = await client.get(f"{BASE}/{created['id']}/stops")

        assert response.status_code == 200
        assert [s["sequence_order"] for s in response.json()["data"]] == [1, 2]


class TestRequestContext:
    async def test_request_id_is_echoed(self, client):
        response = await client.get(f"{BASE}/{uuid4()}", headers={"X-Request-ID": "trace-abc"})
        assert response.headers["X-Request-ID"] == "trace-abc"

    async def test_request_id_is_generated(self, client):
        response = await client.get(BASE)
        assert response.headers["X-Request-ID"]

    async def test_audit_headers_reach_history(self, client, route_payload, store):
        await create_route(
            client,
            route_payload(),
            **{
                "X-User-Id": "dispatcher-9",
                "X-User-Name": "Carla",
                "X-Request-ID": "trace-xyz",
                "User-Agent": "dispatch-console/2.1",
            },
        )

        entry = store.history[0]
        assert entry["user_id"] == "dispatcher-9"
        assert entry["user_name"] == "Carla"
        assert entry["user_type"] == "user"
        assert entry["user_agent"] == "dispatch-console/2.1"
        assert entry["metadata"]["request_id"] == "trace-xyz"
        assert entry["metadata"]["source"] == "api"

    async def test_anonymous_changes_are_system_changes(self, client, route_payload, store):
        await create_route(client, route_payload())
        assert store.history[0]["user_type"] == "system"


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["app"] == "Logistics API"


async def test_health_without_database(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"


async def test_unknown_path_uses_error_body(client):
    response = await client.get("/api/v1/nowhere")
    assert response.status_code == 404
    body = response.json()
    assert body["title"] == "Not Found"
    assert body["errors"][0]["type"] == "RESOURCE_NOT_FOUND"
    assert body["errors"][0]["resource"] == "/api/v1/nowhere"
