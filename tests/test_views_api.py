import os
import unittest
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")

from datakit.cache.provider import InMemoryCacheProvider
from datakit.core.config import settings
from datakit.core.security import create_jwt
from datakit.db.session import get_db
from datakit.dataviews.repository import DataSourceDefinition, DataSourceRepository
from datakit.main import create_app
from datakit.models.post import Post
from datakit.sources.definitions import definition_from_config
from datakit.sources.memory import ArrayDataSource


def _token(role, user_id):
    return create_jwt({"sub": str(user_id), "role": role}, settings.JWT_SECRET, timedelta(hours=1))


class ViewsApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Post.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Post.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.add_all(
                [
                    Post(id=1, title="Alpha", status="publish", author_id=10, slug="alpha"),
                    Post(id=2, title="Beta", status="publish", author_id=11),
                    Post(id=3, title="Gamma", status="draft", author_id=10),
                    Post(id=4, title="Delta", status="publish", author_id=11),
                    Post(id=5, title="Epsilon", status="publish", author_id=12),
                ]
            )
            db.commit()

        repository = DataSourceRepository(
            [
                definition_from_config({"id": "posts", "label": "Posts", "type": "content", "statuses": ["publish", "draft"]}),
                DataSourceDefinition(
                    "numbers",
                    "Numbers",
                    lambda ctx: ArrayDataSource.from_records("numbers", [{"n": number} for number in range(1, 31)]),
                ),
            ]
        )
        self.app = create_app(repository=repository, cache=InMemoryCacheProvider())

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        self.app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(self.app)

    def tearDown(self):
        self.client.close()
        self.app.dependency_overrides.clear()
        with self.SessionLocal() as db:
            db.query(Post).delete()
            db.commit()

    def _auth(self, role="ADMIN", user_id=1):
        return {"Authorization": f"Bearer {_token(role, user_id)}"}

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_list_views(self):
        response = self.client.get("/api/views")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["views"], [{"id": "posts", "label": "Posts"}, {"id": "numbers", "label": "Numbers"}])

    def test_fields(self):
        response = self.client.get("/api/views/numbers/fields")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"fields": [{"id": "n", "label": "N", "parent": None}]})

    def test_anonymous_query_sees_published_posts(self):
        response = self.client.post("/api/views/posts/query", json={"sort": {"field": "title", "direction": "asc"}})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([item["title"] for item in body["data"]], ["Alpha", "Beta", "Delta", "Epsilon"])
        self.assertEqual(body["paginationInfo"], {"total": 4, "pageCount": 1, "page": 1, "pageSize": 25})

    def test_admin_query_with_filter_and_pagination(self):
        response = self.client.post(
            "/api/views/posts/query",
            headers=self._auth(),
            json={
                "filters": [{"field": "author_id--dk--1a2b", "operator": "is-any-of", "value": [10, 12]}],
                "page": 2,
                "pageSize": 2,
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([item["id"] for item in body["data"]], [5])
        self.assertEqual(body["paginationInfo"], {"total": 3, "pageCount": 2, "page": 2, "pageSize": 2})

    def test_search(self):
        response = self.client.post("/api/views/posts/query", json={"search": "delt"})
        self.assertEqual([item["id"] for item in response.json()["data"]], [4])
        empty = self.client.post("/api/views/posts/query", json={"search": "zzz"})
        self.assertEqual(empty.status_code, 200)
        self.assertEqual(empty.json(), {"data": [], "paginationInfo": {"total": 0, "pageCount": 0, "page": 1, "pageSize": 25}})

    def test_invalid_queries_are_400(self):
        response = self.client.post(
            "/api/views/posts/query",
            json={"filters": [{"field": "title", "operator": "contains", "value": "x"}]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "datakit_invalid_query")
        scalar_list = self.client.post(
            "/api/views/posts/query",
            json={"filters": [{"field": "title", "operator": "is", "value": ["a", "b"]}]},
        )
        self.assertEqual(scalar_list.status_code, 400)
        bad_page = self.client.post("/api/views/numbers/query", json={"page": 0})
        self.assertEqual(bad_page.status_code, 400)

    def test_unknown_view_is_404_and_translated(self):
        response = self.client.post("/api/views/missing/query", json={})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"code": "datakit_data_source_not_found", "message": 'DataSource not found. Unknown view "missing".'})
        ru = self.client.get("/api/views/numbers/data/999", headers={"Accept-Language": "ru-RU,ru;q=0.9"})
        self.assertEqual(ru.status_code, 404)
        self.assertEqual(ru.json()["message"], 'Данные для ключа "999" не найдены.')

    def test_get_item(self):
        response = self.client.get("/api/views/posts/data/1")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["dataview_id"], "posts")
        self.assertEqual(body["data_id"], "1")
        self.assertEqual(body["data"]["title"], "Alpha")

    def test_draft_is_forbidden_for_anonymous(self):
        response = self.client.get("/api/views/posts/data/3")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "datakit_action_forbidden")

    def test_invalid_token_is_401(self):
        response = self.client.get("/api/views", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(response.status_code, 401)

    def test_anonymous_delete_is_forbidden(self):
        response = self.client.request("DELETE", "/api/views/posts/data", json={"id": [1]})
        self.assertEqual(response.status_code, 403)
        with self.SessionLocal() as db:
            self.assertIsNotNone(db.get(Post, 1))

    def test_delete_all_ids(self):
        response = self.client.request("DELETE", "/api/views/posts/data", headers=self._auth(), json={"id": [1, "2"]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"id": ["1", "2"]})
        listing = self.client.post("/api/views/posts/query", headers=self._auth(), json={})
        self.assertEqual(listing.json()["paginationInfo"]["total"], 3)

    def test_partial_delete_reports_failures(self):
        response = self.client.request("DELETE", "/api/views/posts/data", headers=self._auth(), json={"id": ["1", "999"]})
        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["id"], ["1"])
        self.assertEqual(body["code"], "datakit_data_not_found")
        self.assertEqual(body["errors"], [{"id": "999", "code": "datakit_data_not_found", "message": 'Data for key "999" not found.'}])

    def test_author_partial_delete_is_403(self):
        response = self.client.request(
            "DELETE",
            "/api/views/posts/data",
            headers=self._auth("AUTHOR", 10),
            json={"id": ["3", "2", "999"]},
        )
        self.assertEqual(response.status_code, 403)
        body = response.json()
        self.assertEqual(body["id"], ["3"])
        self.assertEqual([item["id"] for item in body["errors"]], ["2", "999"])

    def test_delete_on_read_only_view_is_403(self):
        response = self.client.request("DELETE", "/api/views/numbers/data", headers=self._auth(), json={"id": ["1"]})
        self.assertEqual(response.status_code, 403)

    def test_delete_requires_ids(self):
        response = self.client.request("DELETE", "/api/views/posts/data", headers=self._auth(), json={"id": []})
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
