import json
import os
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")

from datakit.db.session import Base
from datakit.dataviews.access import ReadOnlyAccessController
from datakit.dataviews.exceptions import BackendUnavailable, DataSourceNotFound
from datakit.dataviews.repository import DataSourceDefinition, DataSourceRepository, SourceContext
from datakit.models.attachment import Attachment
from datakit.models.form import Form
from datakit.models.form_entry import FormEntry, FormEntryValue
from datakit.models.form_field import FormField
from datakit.models.post import Post
from datakit.models.user import User, UserMeta
from datakit.sources.attachment import attachment_csv
from datakit.sources.content import ContentDataSource
from datakit.sources.csv_file import CsvDataSource
from datakit.sources.definitions import definition_from_config, load_definitions
from datakit.sources.forms import FormDataSource
from datakit.sources.memory import ArrayDataSource
from datakit.sources.users import UserDataSource


class DataSourceRepositoryTests(unittest.TestCase):
    def _definition(self, view_id="numbers"):
        return DataSourceDefinition(view_id, view_id.title(), lambda ctx: ArrayDataSource.from_records(view_id, [{"n": 1}]))

    def test_register_resolve_and_unregister(self):
        repository = DataSourceRepository()
        repository.register(self._definition())
        self.assertTrue(repository.has("numbers"))
        source = repository.resolve("numbers", SourceContext(db=None, access=ReadOnlyAccessController(), settings=None))
        self.assertEqual(source.count(), 1)
        repository.unregister("numbers")
        self.assertFalse(repository.has("numbers"))
        with self.assertRaises(DataSourceNotFound):
            repository.resolve("numbers", SourceContext(db=None, access=ReadOnlyAccessController(), settings=None))

    def test_duplicate_registration_needs_replace(self):
        repository = DataSourceRepository([self._definition()])
        with self.assertRaises(ValueError):
            repository.register(self._definition())
        repository.register(self._definition(), replace=True)
        self.assertEqual([item.id for item in repository.all()], ["numbers"])


class DefinitionLoaderTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        cls.tables = [
            Post.__table__,
            User.__table__,
            UserMeta.__table__,
            Form.__table__,
            FormField.__table__,
            FormEntry.__table__,
            FormEntryValue.__table__,
            Attachment.__table__,
        ]
        Base.metadata.create_all(bind=cls.engine, tables=cls.tables)

    @classmethod
    def tearDownClass(cls):
        Base.metadata.drop_all(bind=cls.engine, tables=cls.tables)
        cls.engine.dispose()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.csv_path = Path(self.tmp.name) / "people.csv"
        self.csv_path.write_text("name\nAnn\nBob\n", encoding="utf-8")
        self.db = self.SessionLocal()
        self.db.add(Form(id=7, title="Signup"))
        self.db.commit()
        self.context = SourceContext(
            db=self.db,
            access=ReadOnlyAccessController(),
            settings=SimpleNamespace(SITE_URL="https://example.test", MEDIA_ROOT=self.tmp.name),
        )

    def tearDown(self):
        self.db.query(Form).delete()
        self.db.commit()
        self.db.close()
        self.tmp.cleanup()

    def test_load_all_definition_types(self):
        config = [
            {"id": "posts", "label": "Posts", "type": "content", "post_types": ["post"]},
            {"id": "people", "type": "users", "roles": ["EDITOR"]},
            {"id": "signups", "type": "form", "form_id": 7},
            {"id": "sheet", "type": "csv", "path": str(self.csv_path)},
        ]
        path = Path(self.tmp.name) / "views.json"
        path.write_text(json.dumps(config), encoding="utf-8")
        definitions = {item.id: item for item in load_definitions(path)}
        self.assertEqual(definitions["posts"].label, "Posts")
        self.assertEqual(definitions["people"].label, "people")
        self.assertIsInstance(definitions["posts"].build(self.context), ContentDataSource)
        self.assertIsInstance(definitions["people"].build(self.context), UserDataSource)
        self.assertIsInstance(definitions["signups"].build(self.context), FormDataSource)
        sheet = definitions["sheet"].build(self.context)
        self.assertIsInstance(sheet, CsvDataSource)
        self.assertEqual(sheet.count(), 2)

    def test_content_defaults_to_published_statuses(self):
        source = definition_from_config({"id": "posts", "type": "content"}).build(self.context)
        self.assertEqual(source.statuses, ("publish",))
        self.assertEqual(source.site_url, "https://example.test")

    def test_attachment_csv_definition(self):
        self.db.add(Attachment(id=3, file_name="people.csv", mime_type="text/csv", size_bytes=1, storage_path="people.csv"))
        self.db.commit()
        definition = definition_from_config({"id": "upload", "type": "attachment-csv", "attachment_id": 3})
        self.assertEqual(definition.build(self.context).count(), 2)
        self.db.query(Attachment).delete()
        self.db.commit()

    def test_numeric_options_must_be_integers(self):
        with self.assertRaises(ValueError):
            definition_from_config({"id": "sheet", "type": "attachment-csv", "attachment_id": "report.csv"})
        with self.assertRaises(ValueError):
            definition_from_config({"id": "signups", "type": "form", "form_id": "signup"})
        definition = definition_from_config({"id": "signups", "type": "form", "form_id": "7"})
        self.assertEqual(definition.build(self.context).schema.form_id, 7)

    def test_csv_dialect_and_encoding_checked_at_load_time(self):
        path = str(self.csv_path)
        with self.assertRaises(ValueError):
            definition_from_config({"id": "sheet", "type": "csv", "path": path, "encoding": "no-such-codec"})
        with self.assertRaises(ValueError):
            definition_from_config({"id": "sheet", "type": "csv", "path": path, "delimiter": ";;"})
        with self.assertRaises(ValueError):
            definition_from_config({"id": "upload", "type": "attachment-csv", "attachment_id": 3, "quotechar": 1})

    def test_attachment_csv_with_non_numeric_id_is_not_found(self):
        with self.assertRaises(DataSourceNotFound):
            attachment_csv(self.db, "report.csv", self.tmp.name)

    def test_csv_with_unknown_encoding_is_unavailable(self):
        with self.assertRaises(BackendUnavailable):
            CsvDataSource.open(self.csv_path, encoding="no-such-codec")

    def test_built_sources_carry_the_view_id(self):
        context = SourceContext(db=self.db, access=self.context.access, settings=self.context.settings, view_id="posts")
        source = definition_from_config({"id": "posts", "type": "content"}).build(context)
        self.assertEqual(source.view_id, "posts")
        self.assertEqual(source.subject_id, "posts")
        self.assertTrue(source.id.startswith("content-"))
        unscoped = definition_from_config({"id": "posts", "type": "content"}).build(self.context)
        self.assertEqual(unscoped.subject_id, unscoped.id)

    def test_invalid_definitions_fail_at_load_time(self):
        with self.assertRaises(ValueError):
            definition_from_config({"id": "x", "type": "spreadsheet"})
        with self.assertRaises(ValueError):
            definition_from_config({"type": "users"})
        with self.assertRaises(ValueError):
            definition_from_config({"id": "f", "type": "form"})
        path = Path(self.tmp.name) / "bad.json"
        path.write_text(json.dumps({"id": "x"}), encoding="utf-8")
        with self.assertRaises(ValueError):
            load_definitions(path)


if __name__ == "__main__":
    unittest.main()
