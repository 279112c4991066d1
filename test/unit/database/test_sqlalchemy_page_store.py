"""
SqlAlchemyPageStore test suite (in-memory SQLite)
Covers: source/page persistence, replace-children, append-only changes, rollback, statistics
"""

from datetime import datetime
from decimal import Decimal

import pytest

from visa_etl.ingest.domain.exceptions import StoreError
from visa_etl.ingest.domain.value_objects.fetched_page import FetchedPage
from visa_etl.ingest.domain.value_objects.load_outcome import DiffSummary
from visa_etl.ingest.domain.value_objects.page_draft import (
    DocumentDraft,
    FeeDraft,
    LinkDraft,
    PageDraft,
    ProcessingTimeDraft,
    StepDraft,
    VisaTypeDraft,
)
from visa_etl.ingest.infrastructure.database.models import (
    ChangeModel,
    FeeModel,
    PageModel,
    SourceModel,
    StepModel,
    VisaTypeModel,
)
from visa_etl.ingest.infrastructure.database.sqlalchemy_page_store import SqlAlchemyPageStore

URL = "https://visa.example.com/work-visa/"


@pytest.fixture
def store(database):
    return SqlAlchemyPageStore(database)


def fetched(html="<html>v1</html>", status=200):
    return FetchedPage(url=URL, final_url=URL, html=html, status_code=status,
                       headers={'etag': '"v1"'}, fetched_at=datetime(2024, 1, 1, 12, 0))


def visa_type(name="Work Visa", fee=Decimal('300')):
    return VisaTypeDraft(
        name=name,
        category='work',
        purpose='employment',
        eligibility=['Must hold a job offer'],
        documents=[DocumentDraft('Passport', 'valid six months')],
        fees=[FeeDraft('Visa fee', fee, 'QAR')],
        processing_times=[ProcessingTimeDraft('Processing Time', 3, 5, '3-5 days')],
        steps=[StepDraft(1, 'Apply online', 'Use the portal'), StepDraft(2, 'Medical exam', 'Visit a centre')],
        external_links=[LinkDraft('MOI', 'https://portal.moi.gov.qa/')],
    )


def draft(text="Work visa text", visa_types=None):
    return PageDraft(url=URL, title='Work Visa', slug='work-visa', summary='About work visas',
                     content_text=text, visa_types=[visa_type()] if visa_types is None else visa_types)


def count(database, model):
    session = database.new_session()
    try:
        return session.query(model).count()
    finally:
        session.close()


# ============================================================================
# Sources and pages
# ============================================================================

class TestSourcesAndPages:

    def test_create_source_and_page(self, store, database):
        with store.transaction() as tx:
            source = tx.create_source(fetched(), "hash-1")
            page_id = tx.save_page(source.id, draft())
            assert tx.replace_records(page_id, draft().visa_types) == 1

        with store.transaction() as tx:
            found = tx.find_source(URL)
            page = tx.find_page(found.id)

        assert found.content_hash == "hash-1"
        assert found.last_fetched_at == datetime(2024, 1, 1, 12, 0)
        assert page.title == 'Work Visa'
        assert page.content_text == 'Work visa text'

        session = database.new_session()
        try:
            model = session.query(SourceModel).one()
            assert model.etag == '"v1"'
            assert model.raw_html == b"<html>v1</html>"
            assert model.http_status == 200

            visa = session.query(VisaTypeModel).one()
            assert [s.step_order for s in visa.steps] == [1, 2]
            assert visa.fees[0].amount == Decimal('300.00')
            assert visa.documents[0].notes == 'valid six months'
            assert visa.external_links[0].link_url == 'https://portal.moi.gov.qa/'
        finally:
            session.close()

    def test_find_unknown_source(self, store):
        with store.transaction() as tx:
            assert tx.find_source("https://visa.example.com/nowhere/") is None

    def test_update_source_metadata_only(self, store, database):
        with store.transaction() as tx:
            source = tx.create_source(fetched(), "hash-1")
        with store.transaction() as tx:
            tx.update_source(source.id, fetched(status=203))

        with store.transaction() as tx:
            assert tx.find_source(URL).content_hash == "hash-1"

        session = database.new_session()
        try:
            assert session.query(SourceModel).one().http_status == 203
        finally:
            session.close()

    def test_update_missing_source(self, store):
        with pytest.raises(StoreError):
            with store.transaction() as tx:
                tx.update_source(999, fetched())


# ============================================================================
# Replace children
# ============================================================================

class TestReplaceRecords:

    def test_children_are_replaced_not_accumulated(self, store, database):
        with store.transaction() as tx:
            source = tx.create_source(fetched(), "hash-1")
            page_id = tx.save_page(source.id, draft())
            tx.replace_records(page_id, draft().visa_types)

        with store.transaction() as tx:
            tx.replace_records(page_id, [visa_type("Work Visa (updated)", Decimal('500'))])

        assert count(database, VisaTypeModel) == 1
        assert count(database, FeeModel) == 1
        assert count(database, StepModel) == 2

        session = database.new_session()
        try:
            assert session.query(FeeModel).one().amount == Decimal('500.00')
        finally:
            session.close()

    def test_failed_transaction_rolls_back(self, store, database):
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                source = tx.create_source(fetched(), "hash-1")
                tx.save_page(source.id, draft())
                raise RuntimeError("crash mid-load")

        assert count(database, SourceModel) == 0
        assert count(database, PageModel) == 0

    def test_constraint_violation_becomes_store_error(self, store, database):
        duplicate_steps = visa_type()
        duplicate_steps.steps = [StepDraft(1, 'a', None), StepDraft(1, 'b', None)]

        with pytest.raises(StoreError):
            with store.transaction() as tx:
                source = tx.create_source(fetched(), "hash-1")
                page_id = tx.save_page(source.id, draft(visa_types=[]))
                tx.replace_records(page_id, [duplicate_steps])

        assert count(database, SourceModel) == 0


# ============================================================================
# Changes and statistics
# ============================================================================

class TestChangesAndStats:

    def test_change_rows_survive_page_regeneration(self, store, database):
        with store.transaction() as tx:
            source = tx.create_source(fetched(), "hash-1")
            page_id = tx.save_page(source.id, draft())
        with store.transaction() as tx:
            tx.add_change(page_id, DiffSummary(1, 1, ["- old", "+ new"]), datetime(2024, 2, 1))
            tx.save_page(source.id, draft("new text"), page_id)

        session = database.new_session()
        try:
            change = session.query(ChangeModel).one()
            assert change.page_id == page_id
            assert change.previews == ["- old", "+ new"]
            assert (change.added_lines, change.removed_lines) == (1, 1)
        finally:
            session.close()

    def test_stats(self, store):
        assert store.get_stats().total_sources == 0

        with store.transaction() as tx:
            source = tx.create_source(fetched(), "hash-1")
            page_id = tx.save_page(source.id, draft())
            tx.replace_records(page_id, draft().visa_types)

        stats = store.get_stats()
        assert (stats.total_sources, stats.total_pages, stats.total_visa_types) == (1, 1, 1)
        assert stats.last_scraped == datetime(2024, 1, 1, 12, 0)
