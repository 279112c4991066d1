"""
Database handle test suite
Covers: schema lifecycle, session_scope commit / rollback, context manager
"""

import pytest
from sqlalchemy import inspect

from visa_etl.ingest.infrastructure.database.models import SourceModel
from visa_etl.shared.db_manager import Database


def source(url="https://visa.example.com/a/"):
    return SourceModel(url=url, url_hash=url[-10:].rjust(64, "0"))


class TestDatabase:

    def test_schema_lifecycle(self):
        with Database("sqlite://") as db:
            db.create_schema()
            tables = set(inspect(db.engine).get_table_names())
            assert {"sources", "pages", "visa_types", "fees", "changes"} <= tables

            db.drop_schema()
            assert inspect(db.engine).get_table_names() == []

    def test_session_scope_commits(self, database):
        with database.session_scope() as session:
            session.add(source())

        with database.session_scope() as session:
            assert session.query(SourceModel).count() == 1

    def test_session_scope_rolls_back(self, database):
        with pytest.raises(RuntimeError):
            with database.session_scope() as session:
                session.add(source())
                session.flush()
                raise RuntimeError("boom")

        with database.session_scope() as session:
            assert session.query(SourceModel).count() == 0

    def test_file_database_is_shared_between_handles(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'etl.db'}"
        with Database(url) as first:
            first.create_schema()
            with first.session_scope() as session:
                session.add(source())

        with Database(url) as second:
            with second.session_scope() as session:
                assert session.query(SourceModel).count() == 1
