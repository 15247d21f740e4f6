import os
import unittest

from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")

from datakit.core.http_hardening import request_id_from_header
from datakit.main import app


class RequestLoggingTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_health_has_request_id_and_no_store(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers.get("cache-control"), "no-store")
        request_id = response.headers.get("x-request-id")
        self.assertIsNotNone(request_id)
        self.assertRegex(str(request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_valid_request_id_is_preserved(self):
        external_request_id = "release-check-2026_10_18"
        response = self.client.get("/health", headers={"X-Request-ID": external_request_id})
        self.assertEqual(response.headers.get("x-request-id"), external_request_id)

    def test_invalid_request_id_is_replaced(self):
        bad_request_id = "bad id with spaces"
        response = self.client.get("/health", headers={"X-Request-ID": bad_request_id})
        self.assertNotEqual(response.headers.get("x-request-id"), bad_request_id)
        self.assertNotEqual(request_id_from_header(""), request_id_from_header(""))

    def test_request_is_logged(self):
        with self.assertLogs("datakit.http", level="INFO") as logs:
            self.client.get("/health")
        self.assertTrue(any("GET /health status=200" in line for line in logs.output))

    def test_error_response_keeps_request_id(self):
        response = self.client.get("/api/views/unknown/fields")
        self.assertEqual(response.status_code, 404)
        self.assertIsNotNone(response.headers.get("x-request-id"))


if __name__ == "__main__":
    unittest.main()
