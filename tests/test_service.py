"""End-to-end tests for the registration HTTP API."""

from __future__ import annotations

import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registration.database import Database
from registration.service import create_app


ANA = {"name": "Ana", "gender": "F", "email": "ana@example.com", "country": "BR"}


class RegistrationServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "users.sqlite3"
        self.database = Database(db_path)
        self.database.initialize()
        self.app = create_app(database=self.database)

    def tearDown(self) -> None:
        self.database.close()
        self._tempdir.cleanup()

    def test_registration_lifecycle(self) -> None:
        with TestClient(self.app) as client:
            created = client.post("/register", json=ANA)
            self.assertEqual(created.status_code, 200, created.text)
            self.assertEqual(created.text, "User registered successfully")

            listing = client.get("/users")
            self.assertEqual(listing.status_code, 200)
            users = listing.json()
            self.assertEqual(len(users), 1)
            record = users[0]
            self.assertEqual(record["name"], "Ana")
            self.assertEqual(record["gender"], "F")
            self.assertEqual(record["email"], "ana@example.com")
            self.assertEqual(record["country"], "BR")
            self.assertIsInstance(record["id"], int)
            self.assertIn("created_at", record)

            fetched = client.get(f"/users/{record['id']}")
            self.assertEqual(fetched.status_code, 200)
            self.assertEqual(fetched.json(), record)

            duplicate = client.post("/register", json=ANA)
            self.assertEqual(duplicate.status_code, 400)
            self.assertEqual(duplicate.text, "Email already exists")
            self.assertEqual(len(client.get("/users").json()), 1)

            deleted = client.delete(f"/users/{record['id']}")
            self.assertEqual(deleted.status_code, 200)
            self.assertEqual(deleted.text, "User deleted successfully")

            missing = client.get(f"/users/{record['id']}")
            self.assertEqual(missing.status_code, 404)
            self.assertEqual(missing.json(), {"error": "User not found"})
            self.assertEqual(client.get("/users").json(), [])

    def test_register_accepts_form_encoded_body(self) -> None:
        with TestClient(self.app) as client:
            response = client.post("/register", data=ANA)
            self.assertEqual(response.status_code, 200, response.text)

        users = self.database.list_users()
        self.assertEqual([user.email for user in users], ["ana@example.com"])

    def test_register_rejects_missing_fields(self) -> None:
        with TestClient(self.app) as client:
            for field in ANA:
                payload = {key: value for key, value in ANA.items() if key != field}
                response = client.post("/register", json=payload)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.text, "All fields are required")

            blank = client.post("/register", data={**ANA, "country": ""})
            self.assertEqual(blank.status_code, 400)
            self.assertEqual(blank.text, "All fields are required")

            empty = client.post("/register")
            self.assertEqual(empty.status_code, 400)

        self.assertEqual(self.database.list_users(), [])

    def test_register_rejects_invalid_email(self) -> None:
        with TestClient(self.app) as client:
            for email in ("ana", "ana@example", "ana@"):
                response = client.post("/register", json={**ANA, "email": email})
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.text, "Invalid email format")

        self.assertEqual(self.database.list_users(), [])

    def test_register_rejects_malformed_json(self) -> None:
        with TestClient(self.app) as client:
            response = client.post(
                "/register",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        self.assertEqual(response.status_code, 400)

    def test_unknown_ids_return_not_found(self) -> None:
        with TestClient(self.app) as client:
            fetched = client.get("/users/999")
            self.assertEqual(fetched.status_code, 404)
            self.assertEqual(fetched.json(), {"error": "User not found"})

            deleted = client.delete("/users/999")
            self.assertEqual(deleted.status_code, 404)
            self.assertEqual(deleted.text, "User not found")

            non_numeric = client.get("/users/abc")
            self.assertEqual(non_numeric.status_code, 404)
            self.assertEqual(client.delete("/users/abc").status_code, 404)

    def test_out_of_range_ids_return_not_found(self) -> None:
        with TestClient(self.app) as client:
            for raw_id in ("99999999999999999999", "-99999999999999999999", str(2**63)):
                fetched = client.get(f"/users/{raw_id}")
                self.assertEqual(fetched.status_code, 404)
                self.assertEqual(fetched.json(), {"error": "User not found"})

                deleted = client.delete(f"/users/{raw_id}")
                self.assertEqual(deleted.status_code, 404)
                self.assertEqual(deleted.text, "User not found")

    def test_ids_must_be_plain_decimal_digits(self) -> None:
        with TestClient(self.app) as client:
            for index in range(10):
                response = client.post(
                    "/register", json={**ANA, "email": f"user{index}@example.com"}
                )
                self.assertEqual(response.status_code, 200)

            self.assertEqual(client.get("/users/10").status_code, 200)
            for raw_id in ("1_0", "+10", "%2010", "١٠"):
                fetched = client.get(f"/users/{raw_id}")
                self.assertEqual(fetched.status_code, 404, raw_id)
                self.assertEqual(fetched.json(), {"error": "User not found"})
                self.assertEqual(client.delete(f"/users/{raw_id}").status_code, 404, raw_id)

            self.assertEqual(len(client.get("/users").json()), 10)

    def test_register_ignores_bodies_that_are_not_json_or_form(self) -> None:
        body = "name=Ana&gender=F&email=ana%40example.com&country=BR"
        with TestClient(self.app) as client:
            plain = client.post(
                "/register", content=body, headers={"content-type": "text/plain"}
            )
            self.assertEqual(plain.status_code, 400)
            self.assertEqual(plain.text, "All fields are required")

            untyped = client.post("/register", content=body.encode("utf-8"))
            self.assertEqual(untyped.status_code, 400)
            self.assertEqual(untyped.text, "All fields are required")

            form = client.post(
                "/register",
                content=body,
                headers={"content-type": "application/x-www-form-urlencoded; charset=utf-8"},
            )
            self.assertEqual(form.status_code, 200, form.text)

        self.assertEqual([user.email for user in self.database.list_users()], ["ana@example.com"])

    def test_list_returns_newest_first(self) -> None:
        with TestClient(self.app) as client:
            for index in range(3):
                response = client.post(
                    "/register", json={**ANA, "email": f"user{index}@example.com"}
                )
                self.assertEqual(response.status_code, 200)

            emails = [record["email"] for record in client.get("/users").json()]

        self.assertEqual(
            emails, ["user2@example.com", "user1@example.com", "user0@example.com"]
        )

    def test_storage_failures_return_database_error(self) -> None:
        with sqlite3.connect(self.database.path) as raw:
            raw.execute("DROP TABLE users")

        with TestClient(self.app) as client:
            listing = client.get("/users")
            self.assertEqual(listing.status_code, 500)
            self.assertEqual(listing.json(), {"error": "Database error"})

            fetched = client.get("/users/1")
            self.assertEqual(fetched.status_code, 500)
            self.assertEqual(fetched.json(), {"error": "Database error"})

            deleted = client.delete("/users/1")
            self.assertEqual(deleted.status_code, 500)
            self.assertEqual(deleted.text, "Database error")

            created = client.post("/register", json=ANA)
            self.assertEqual(created.status_code, 500)
            self.assertEqual(created.text, "Database error")

    def test_landing_page_and_health(self) -> None:
        with TestClient(self.app) as client:
            page = client.get("/")
            self.assertEqual(page.status_code, 200)
            self.assertIn("text/html", page.headers["content-type"])
            self.assertIn('action="/register"', page.text)

            health = client.get("/health")
            self.assertEqual(health.json(), {"status": "ok"})

    def test_shutdown_closes_database(self) -> None:
        with TestClient(self.app) as client:
            client.get("/users")
            self.assertTrue(self.database.is_open)
        self.assertFalse(self.database.is_open)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
