"""
API tests for the /api/tasks endpoints.

Each test follows the AAA pattern:
- Arrange: Set up test data and preconditions
- Act: Perform the action being tested
- Assert: Verify the expected outcomes

Key Concepts Demonstrated:
- Testing HTTP methods (GET, POST, PUT, PATCH, DELETE)
- Status code and response body validation
- Collection order after create and reorder
- Authentication on every task endpoint
"""

import json

import pytest

pytestmark = [pytest.mark.integration, pytest.mark.api]


def _ids(response) -> list[str]:
    return [task["id"] for task in json.loads(response.data)["tasks"]]


class TestHealth:
    """Tests for GET /api/health."""

    def test_health_needs_no_token(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert json.loads(response.data)["status"] == "healthy"


class TestGetTasks:
    """Tests for GET /api/tasks."""

    def test_empty_collection(self, client, auth_headers):
        response = client.get("/api/tasks", headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data == {"tasks": [], "count": 0, "total": 0}

    def test_tasks_are_listed_newest_first(self, client, auth_headers, task_factory):
        # Arrange
        first = task_factory("First")
        second = task_factory("Second")

        # Act
        response = client.get("/api/tasks", headers=auth_headers)

        # Assert
        assert _ids(response) == [second.id, first.id]

    def test_filters_combine(self, client, auth_headers, task_factory):
        # Arrange
        task_factory("Write report", priority="high", category="work")
        task_factory("Pay rent", priority="low", category="personal", completed=True)
        task_factory("Team meeting", priority="high", category="work")

        # Act
        response = client.get(
            "/api/tasks?status=pending&category=work&priority=high&q=REPORT",
            headers=auth_headers,
        )

        # Assert
        data = json.loads(response.data)
        assert [task["text"] for task in data["tasks"]] == ["Write report"]
        assert data["count"] == 1
        assert data["total"] == 3

    def test_invalid_filter_returns_400(self, client, auth_headers):
        response = client.get("/api/tasks?status=done", headers=auth_headers)

        assert response.status_code == 400
        assert "status" in json.loads(response.data)["error"]

    def test_get_single_task(self, client, auth_headers, task_factory):
        task = task_factory("Lookup me")

        response = client.get(f"/api/tasks/{task.id}", headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data)["text"] == "Lookup me"

    def test_get_missing_task_returns_404(self, client, auth_headers):
        response = client.get("/api/tasks/doesnotexist", headers=auth_headers)

        assert response.status_code == 404
        assert json.loads(response.data)["error"] == "Task not found"


class TestCreateTask:
    """Tests for POST /api/tasks."""

    def test_create_task_with_all_fields(self, client, auth_headers, valid_task_data):
        # Act
        response = client.post(
            "/api/tasks", data=json.dumps(valid_task_data), headers=auth_headers
        )

        # Assert
        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["text"] == "Finish report"
        assert data["priority"] == "high"
        assert data["category"] == "work"
        assert data["completed"] is False
        assert data["due_date"].endswith("+00:00")
        assert data["id"]
        assert data["created_at"]

    def test_create_task_applies_defaults(self, client, auth_headers):
        response = client.post(
            "/api/tasks", data=json.dumps({"text": "  Buy milk  "}), headers=auth_headers
        )

        data = json.loads(response.data)
        assert response.status_code == 201
        assert data["text"] == "Buy milk"
        assert data["priority"] == "medium"
        assert data["category"] == "personal"
        assert data["due_date"] is None

    def test_created_task_is_first(self, client, auth_headers, task_factory):
        task_factory("Older")

        created = json.loads(client.post(
            "/api/tasks", data=json.dumps({"text": "Newer"}), headers=auth_headers
        ).data)

        listing = client.get("/api/tasks", headers=auth_headers)
        assert _ids(listing)[0] == created["id"]

    def test_blank_text_is_rejected_and_nothing_is_stored(self, client, auth_headers):
        response = client.post(
            "/api/tasks", data=json.dumps({"text": "   "}), headers=auth_headers
        )

        assert response.status_code == 400
        listing = json.loads(client.get("/api/tasks", headers=auth_headers).data)
        assert listing["total"] == 0


class TestUpdateTask:
    """Tests for PUT/PATCH /api/tasks/<id>."""

    @pytest.mark.parametrize("method", ["put", "patch"])
    def test_partial_update(self, client, auth_headers, task_factory, method):
        # Arrange
        task = task_factory("Original", priority="low")

        # Act
        response = getattr(client, method)(
            f"/api/tasks/{task.id}",
            data=json.dumps({"category": "study"}),
            headers=auth_headers,
        )

        # Assert
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data["category"] == "study"
        assert data["priority"] == "low"
        assert data["text"] == "Original"

    def test_blank_text_keeps_old_text(self, client, auth_headers, task_factory):
        task = task_factory("Keep")

        response = client.put(
            f"/api/tasks/{task.id}",
            data=json.dumps({"text": "", "completed": True}),
            headers=auth_headers,
        )

        data = json.loads(response.data)
        assert data["text"] == "Keep"
        assert data["completed"] is True

    def test_clear_due_date(self, client, auth_headers, task_factory, valid_task_data):
        created = json.loads(client.post(
            "/api/tasks", data=json.dumps(valid_task_data), headers=auth_headers
        ).data)

        response = client.patch(
            f"/api/tasks/{created['id']}",
            data=json.dumps({"due_date": None}),
            headers=auth_headers,
        )

        assert json.loads(response.data)["due_date"] is None

    def test_update_keeps_position(self, client, auth_headers, task_factory):
        tasks = [task_factory(f"Task {n}") for n in range(3)]
        before = _ids(client.get("/api/tasks", headers=auth_headers))

        client.put(f"/api/tasks/{tasks[1].id}", data=json.dumps({"text": "Edited"}),
                   headers=auth_headers)

        assert _ids(client.get("/api/tasks", headers=auth_headers)) == before

    def test_update_missing_task_returns_404(self, client, auth_headers):
        response = client.put(
            "/api/tasks/nope", data=json.dumps({"text": "x"}), headers=auth_headers
        )

        assert response.status_code == 404


class TestToggleTask:
    """Tests for POST /api/tasks/<id>/toggle."""

    def test_toggle_twice_restores_state(self, client, auth_headers, task_factory):
        task = task_factory("Flip me")

        first = json.loads(client.post(f"/api/tasks/{task.id}/toggle", headers=auth_headers).data)
        second = json.loads(client.post(f"/api/tasks/{task.id}/toggle", headers=auth_headers).data)

        assert first["completed"] is True
        assert second["completed"] is False

    def test_toggle_missing_task_returns_404(self, client, auth_headers):
        response = client.post("/api/tasks/nope/toggle", headers=auth_headers)

        assert response.status_code == 404


class TestDeleteTasks:
    """Tests for DELETE /api/tasks and /api/tasks/<id>."""

    def test_delete_is_idempotent(self, client, auth_headers, task_factory):
        task = task_factory("Remove me")

        first = client.delete(f"/api/tasks/{task.id}", headers=auth_headers)
        second = client.delete(f"/api/tasks/{task.id}", headers=auth_headers)

        assert first.status_code == second.status_code == 200
        assert json.loads(first.data) == {"deleted": True}
        assert json.loads(second.data) == {"deleted": False}

    def test_clear_all(self, client, auth_headers, task_factory):
        for n in range(3):
            task_factory(f"Task {n}")

        response = client.delete("/api/tasks", headers=auth_headers)

        assert json.loads(response.data) == {"deleted": 3}
        listing = json.loads(client.get("/api/tasks", headers=auth_headers).data)
        assert listing["total"] == 0


class TestReorder:
    """Tests for POST /api/tasks/reorder."""

    def test_move_persists(self, client, auth_headers, task_factory):
        # Arrange: order is c, b, a
        a = task_factory("a")
        b = task_factory("b")
        c = task_factory("c")

        # Act: drop c onto a
        response = client.post(
            "/api/tasks/reorder",
            data=json.dumps({"dragged_id": c.id, "target_id": a.id}),
            headers=auth_headers,
        )

        # Assert
        data = json.loads(response.data)
        assert data == {"moved": True, "order": [b.id, a.id, c.id]}
        assert _ids(client.get("/api/tasks", headers=auth_headers)) == [b.id, a.id, c.id]

    def test_new_task_after_reorder_is_first(self, client, auth_headers, task_factory):
        a = task_factory("a")
        b = task_factory("b")
        client.post("/api/tasks/reorder",
                    data=json.dumps({"dragged_id": b.id, "target_id": a.id}),
                    headers=auth_headers)

        created = task_factory("c")

        assert _ids(client.get("/api/tasks", headers=auth_headers)) == [created.id, a.id, b.id]

    def test_same_id_is_noop(self, client, auth_headers, task_factory):
        a = task_factory("a")

        response = client.post(
            "/api/tasks/reorder",
            data=json.dumps({"dragged_id": a.id, "target_id": a.id}),
            headers=auth_headers,
        )

        assert json.loads(response.data) == {"moved": False, "order": [a.id]}

    def test_missing_ids_return_400(self, client, auth_headers):
        response = client.post(
            "/api/tasks/reorder", data=json.dumps({"dragged_id": "x"}), headers=auth_headers
        )

        assert response.status_code == 400


class TestProgress:
    """Tests for GET /api/tasks/progress."""

    def test_empty_progress(self, client, auth_headers):
        response = client.get("/api/tasks/progress", headers=auth_headers)

        assert json.loads(response.data) == {"total": 0, "completed_count": 0, "percent": 0}

    def test_scenario_two_tasks_one_done(self, client, auth_headers):
        # Arrange
        milk = json.loads(client.post(
            "/api/tasks",
            data=json.dumps({"text": "Buy milk", "priority": "low", "category": "personal"}),
            headers=auth_headers,
        ).data)
        client.post(
            "/api/tasks",
            data=json.dumps({"text": "Finish report", "priority": "high", "category": "work"}),
            headers=auth_headers,
        )

        # Act
        client.post(f"/api/tasks/{milk['id']}/toggle", headers=auth_headers)

        # Assert
        completed = client.get("/api/tasks?status=completed", headers=auth_headers)
        assert _ids(completed) == [milk["id"]]
        progress = json.loads(client.get("/api/tasks/progress", headers=auth_headers).data)
        assert progress == {"total": 2, "completed_count": 1, "percent": 50.0}


class TestAuthentication:
    """Every task endpoint requires a Bearer token."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/tasks"),
        ("post", "/api/tasks"),
        ("get", "/api/tasks/progress"),
        ("get", "/api/tasks/abc"),
        ("put", "/api/tasks/abc"),
        ("post", "/api/tasks/abc/toggle"),
        ("delete", "/api/tasks/abc"),
        ("delete", "/api/tasks"),
        ("post", "/api/tasks/reorder"),
    ])
    def test_missing_token_returns_401(self, client, db_session, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 401

    def test_invalid_token_returns_401(self, client, db_session, api_headers):
        headers = {**api_headers, "Authorization": "Bearer not-a-jwt"}

        response = client.get("/api/tasks", headers=headers)

        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Invalid or expired token"


class TestSnapshotBackend:
    """The same API contract holds when tasks live in JSON snapshots."""

    def test_crud_and_reorder_round_trip(self, client, auth_headers, snapshot_backend, user):
        # Arrange
        created = [
            json.loads(client.post("/api/tasks", data=json.dumps({"text": text}),
                                   headers=auth_headers).data)
            for text in ("a", "b", "c")
        ]
        a, b, c = (task["id"] for task in created)

        # Act
        client.post("/api/tasks/reorder",
                    data=json.dumps({"dragged_id": c, "target_id": a}),
                    headers=auth_headers)
        client.post(f"/api/tasks/{b}/toggle", headers=auth_headers)

        # Assert
        listing = client.get("/api/tasks", headers=auth_headers)
        assert _ids(listing) == [b, a, c]
        assert (snapshot_backend / f"tasks-{user.id}.json").exists()
        progress = json.loads(client.get("/api/tasks/progress", headers=auth_headers).data)
        assert progress["completed_count"] == 1
