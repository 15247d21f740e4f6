import os
import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")

from datakit.dataviews.data_source import RecordCache
from datakit.dataviews.exceptions import BackendUnavailable, DataSourceNotFound, InvalidQuery, RecordNotFound
from datakit.dataviews.query import Filter, Filters, Operator, Sort
from datakit.models.attachment import Attachment
from datakit.sources.attachment import attachment_csv
from datakit.sources.csv_file import CsvDataSource
from datakit.sources.memory import ArrayDataSource

PEOPLE_CSV = """name,city,age,city
Ann,Paris,31,FR
Bob,Berlin,25,DE
Cid,Paris,9,FR
Dee,Rome,40,IT
Eve,"Paris, TX",18,US
"""


class ArrayDataSourceTests(unittest.TestCase):
    def setUp(self):
        self.source = ArrayDataSource.from_records(
            "tags",
            {
                "a": {"title": "First", "tags": ["red", "blue"]},
                "b": {"title": "Second", "tags": ["blue"]},
                "c": {"title": "Third", "tags": ["green"]},
                "d": {"title": "Fourth", "tags": ["red", "green", "blue"]},
                "e": {"title": "Fifth", "tags": []},
            },
        )

    def _ids(self, operator, value):
        return self.source.filter_by(Filters.of(Filter("tags", operator, value))).list_ids()

    def test_list_valued_fields_match_on_membership(self):
        self.assertEqual(self._ids(Operator.IS_ANY_OF, ["red", "green"]), ["a", "c", "d"])
        self.assertEqual(self._ids(Operator.IS_ALL_OF, ["red", "blue"]), ["a", "d"])
        self.assertEqual(self._ids(Operator.IS_NOT_ALL_OF, ["red", "blue"]), ["b", "c", "e"])
        self.assertEqual(self._ids(Operator.IS_NONE_OF, ["blue"]), ["c", "e"])
        self.assertEqual(self._ids(Operator.IS, "green"), ["c", "d"])
        self.assertEqual(self._ids(Operator.IS_NOT, "green"), ["a", "b", "e"])

    def test_configuring_returns_a_new_source(self):
        filtered = self.source.filter_by(Filters.of(Filter("tags", Operator.IS, "green")))
        self.assertEqual(self.source.count(), 5)
        self.assertEqual(filtered.count(), 2)
        self.assertEqual(self.source.id, "array-tags")

    def test_get_by_id_and_missing_record(self):
        self.assertEqual(self.source.get_by_id("b")["title"], "Second")
        with self.assertRaises(RecordNotFound):
            self.source.get_by_id("zz")

    def test_list_ids_fills_record_cache(self):
        records = RecordCache()
        self.source.list_ids(2, 1, records)
        self.assertEqual(len(records), 2)
        self.assertEqual(records.get(self.source.id, "b")["title"], "Second")


class CsvDataSourceTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "people.csv"
        self.path.write_text(PEOPLE_CSV, encoding="utf-8")
        self.source = CsvDataSource.open(self.path)

    def tearDown(self):
        self.tmp.cleanup()

    def test_header_defines_fields_and_duplicates_get_suffix(self):
        fields = self.source.fields()
        self.assertEqual([item.key for item in fields], ["name", "city", "age", "city_2"])
        self.assertEqual(fields[3].label, "city")

    def test_ids_are_row_numbers(self):
        self.assertEqual(self.source.list_ids(), ["1", "2", "3", "4", "5"])
        self.assertEqual(self.source.get_by_id("4"), {"name": "Dee", "city": "Rome", "age": "40", "city_2": "IT"})
        self.assertEqual(self.source.get_by_id("5")["city"], "Paris, TX")
        with self.assertRaises(RecordNotFound):
            self.source.get_by_id("99")

    def test_is_any_of_filter(self):
        source = self.source.filter_by([{"field": "city", "operator": "is-any-of", "value": ["Paris", "Rome"]}])
        self.assertEqual(source.list_ids(), ["1", "3", "4"])
        self.assertEqual(source.count(), 3)

    def test_natural_sort_and_pages(self):
        source = self.source.sort_by(Sort("age"))
        self.assertEqual(source.list_ids(), ["3", "5", "2", "1", "4"])
        self.assertEqual(source.sort_by(Sort("age", "desc")).list_ids(2, 0), ["4", "1"])
        self.assertEqual(source.list_ids(2, 4), ["4"])
        self.assertEqual(source.list_ids(2, 10), [])

    def test_search_is_case_insensitive(self):
        self.assertEqual(self.source.search_by("PARIS").list_ids(), ["1", "3", "5"])
        self.assertEqual(self.source.search_by("nobody").count(), 0)

    def test_field_suffix_is_stripped(self):
        source = self.source.filter_by(Filters.of(Filter("city_2--dk--9f1", Operator.IS, "DE")))
        self.assertEqual(source.list_ids(), ["2"])

    def test_unknown_key_is_invalid_query(self):
        with self.assertRaises(InvalidQuery):
            self.source.filter_by(Filters.of(Filter("country", Operator.IS, "FR"))).count()
        with self.assertRaises(InvalidQuery):
            self.source.sort_by(Sort("country")).list_ids()

    def test_missing_file_fails_at_construction(self):
        with self.assertRaises(BackendUnavailable):
            CsvDataSource.open(Path(self.tmp.name) / "missing.csv")

    def test_id_depends_on_configuration(self):
        same = CsvDataSource.open(self.path)
        semicolon = CsvDataSource.open(self.path, delimiter=";")
        self.assertEqual(self.source.id, same.id)
        self.assertTrue(self.source.id.startswith("csv-"))
        self.assertNotEqual(self.source.id, semicolon.id)


class AttachmentCsvTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Attachment.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Attachment.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.media_root = Path(self.tmp.name) / "media"
        (self.media_root / "exports").mkdir(parents=True)
        (self.media_root / "exports" / "people.csv").write_text(PEOPLE_CSV, encoding="utf-8")
        self.db = self.SessionLocal()
        self.db.add_all(
            [
                Attachment(id=1, file_name="people.csv", mime_type="text/csv", size_bytes=10, storage_path="exports/people.csv"),
                Attachment(id=2, file_name="evil.csv", mime_type="text/csv", size_bytes=10, storage_path="../outside.csv"),
            ]
        )
        self.db.commit()

    def tearDown(self):
        self.db.query(Attachment).delete()
        self.db.commit()
        self.db.close()
        self.tmp.cleanup()

    def test_attachment_resolves_to_csv_source(self):
        source = attachment_csv(self.db, 1, self.media_root)
        self.assertEqual(source.count(), 5)

    def test_missing_attachment_is_not_found(self):
        with self.assertRaises(DataSourceNotFound):
            attachment_csv(self.db, 99, self.media_root)

    def test_path_outside_media_root_is_not_found(self):
        with self.assertRaises(DataSourceNotFound):
            attachment_csv(self.db, 2, self.media_root)


if __name__ == "__main__":
    unittest.main()
