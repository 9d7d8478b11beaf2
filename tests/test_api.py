"""End-to-end tests for the users HTTP API."""

from __future__ import annotations

import sqlite3
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from usercrud.application import create_application
from usercrud.config import Settings
from usercrud.database import Database
from usercrud.service import create_api_app, create_app


class UsersAPITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "users.sqlite3"
        self.database = Database(db_path)
        self.settings = Settings(database_path=db_path)

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _client(self) -> TestClient:
        return TestClient(create_api_app(database=self.database, settings=self.settings))

    def test_user_lifecycle(self) -> None:
        with self._client() as client:
            created = client.post("/api/users", json={"name": "Ann", "email": "a@x.com"})
            self.assertEqual(created.status_code, 201, created.text)
            payload = created.json()
            self.assertEqual(payload["name"], "Ann")
            self.assertEqual(payload["email"], "a@x.com")
            self.assertTrue(payload["id"])
            self.assertIn("createdAt", payload)
            user_id = payload["id"]

            listing = client.get("/api/users")
            self.assertEqual(listing.status_code, 200, listing.text)
            self.assertEqual([item["id"] for item in listing.json()], [user_id])

            fetched = client.get(f"/api/users/{user_id}")
            self.assertEqual(fetched.status_code, 200, fetched.text)
            self.assertEqual(fetched.json()["email"], "a@x.com")

            updated = client.put(
                f"/api/users/{user_id}",
                json={"name": "Ann B", "email": "a@x.com"},
            )
            self.assertEqual(updated.status_code, 200, updated.text)
            self.assertEqual(updated.json()["name"], "Ann B")
            self.assertEqual(updated.json()["id"], user_id)

            deleted = client.delete(f"/api/users/{user_id}")
            self.assertEqual(deleted.status_code, 200, deleted.text)
            self.assertEqual(deleted.json(), {"message": "User deleted successfully"})

            empty = client.get("/api/users")
            self.assertEqual(empty.json(), [])

    def test_create_accepts_form_style_optional_fields(self) -> None:
        with self._client() as client:
            created = client.post(
                "/api/users",
                json={"name": "Bo", "email": "bo@x.com", "phone": "", "age": "27", "address": ""},
            )
            self.assertEqual(created.status_code, 201, created.text)
            payload = created.json()
            self.assertEqual(payload["age"], 27)
            self.assertIsNone(payload["phone"])
            self.assertIsNone(payload["address"])

    def test_long_field_values_are_stored_unchanged(self) -> None:
        long_name = "A" * 300
        long_address = "Main Street " * 200

        with self._client() as client:
            created = client.post(
                "/api/users",
                json={"name": long_name, "email": "a@x.com", "address": long_address},
            )

        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["name"], long_name)
        stored = self.database.get_user(created.json()["id"])
        self.assertEqual(stored.address, long_address.strip())

    def test_create_without_required_fields_returns_400_with_message(self) -> None:
        with self._client() as client:
            response = client.post("/api/users", json={"name": "Ann"})
            self.assertEqual(response.status_code, 400, response.text)
            self.assertIn("Email", response.json()["message"])

            empty = client.post("/api/users", json={})
            self.assertEqual(empty.status_code, 400, empty.text)
            self.assertTrue(empty.json()["message"])

            self.assertEqual(client.get("/api/users").json(), [])

    def test_malformed_body_returns_400_with_message(self) -> None:
        with self._client() as client:
            response = client.post(
                "/api/users",
                content=b"not json",
                headers={"content-type": "application/json"},
            )
            self.assertEqual(response.status_code, 400, response.text)
            self.assertIn("message", response.json())

            bad_age = client.post(
                "/api/users",
                json={"name": "Ann", "email": "a@x.com", "age": "old"},
            )
            self.assertEqual(bad_age.status_code, 400, bad_age.text)
            self.assertEqual(bad_age.json()["message"], "Age must be a whole number")

    def test_update_unknown_user_returns_404_with_message(self) -> None:
        with self._client() as client:
            response = client.put(
                "/api/users/5f8d0d55b54764421b7156c9",
                json={"name": "Ann", "email": "a@x.com"},
            )
            self.assertEqual(response.status_code, 404, response.text)
            self.assertEqual(response.json()["message"], "User not found")

    def test_update_with_missing_email_returns_400(self) -> None:
        with self._client() as client:
            created = client.post("/api/users", json={"name": "Ann", "email": "a@x.com"})
            user_id = created.json()["id"]

            response = client.put(f"/api/users/{user_id}", json={"name": "Ann"})
            self.assertEqual(response.status_code, 400, response.text)
            self.assertIn("message", response.json())

            fetched = client.get(f"/api/users/{user_id}")
            self.assertEqual(fetched.json()["email"], "a@x.com")

    def test_delete_and_get_unknown_user_return_404(self) -> None:
        with self._client() as client:
            deleted = client.delete("/api/users/missing")
            self.assertEqual(deleted.status_code, 404, deleted.text)
            self.assertIn("message", deleted.json())

            fetched = client.get("/api/users/missing")
            self.assertEqual(fetched.status_code, 404, fetched.text)

    def test_store_failure_returns_500_with_message(self) -> None:
        app = create_api_app(database=self.database, settings=self.settings)
        with TestClient(app) as client:
            with sqlite3.connect(self.database.path) as conn:
                conn.execute("DROP TABLE users")

            response = client.get("/api/users")
            self.assertEqual(response.status_code, 500, response.text)
            self.assertEqual(response.json()["message"], "User database is unavailable")

    def test_welcome_and_health_endpoints(self) -> None:
        with self._client() as client:
            self.assertEqual(client.get("/api").json(), {"message": "Welcome to CRUD API"})
            self.assertEqual(client.get("/api/healthz").json(), {"status": "ok"})

    def test_unknown_route_returns_message(self) -> None:
        with self._client() as client:
            response = client.get("/api/nothing-here")
            self.assertEqual(response.status_code, 404)
            self.assertIn("message", response.json())

    def test_cors_headers_are_sent(self) -> None:
        with self._client() as client:
            response = client.get("/api/users", headers={"Origin": "http://localhost:3000"})
            self.assertEqual(response.headers.get("access-control-allow-origin"), "*")

    def test_application_factory_uses_explicit_database_path(self) -> None:
        db_path = Path(self._tempdir.name) / "factory.sqlite3"
        app = create_application(database_path=str(db_path))
        with TestClient(app) as client:
            self.assertEqual(client.get("/api/healthz").json(), {"status": "ok"})
            created = client.post("/api/users", json={"name": "Ann", "email": "a@x.com"})
            self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(Database(db_path).count_users(), 1)

    def test_combined_app_serves_api(self) -> None:
        app = create_app(database=self.database, settings=self.settings)
        with TestClient(app) as client:
            created = client.post("/api/users", json={"name": "Ann", "email": "a@x.com"})
            self.assertEqual(created.status_code, 201, created.text)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
