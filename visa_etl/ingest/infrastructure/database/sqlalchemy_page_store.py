from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visa_etl.shared.db_manager import Database

from ...domain.demand_interface.i_page_store import IPageStore, IStoreTransaction, StoredPage, StoredSource
from ...domain.domain_service.change_detector import url_hash
from ...domain.exceptions import StoreError
from ...domain.value_objects.fetched_page import FetchedPage
from ...domain.value_objects.load_outcome import DiffSummary
from ...domain.value_objects.page_draft import PageDraft, VisaTypeDraft
from ...domain.value_objects.run_summary import StoreStats
from .models import (
    ChangeModel,
    EligibilityCriterionModel,
    ExternalLinkModel,
    FeeModel,
    PageModel,
    ProcessingTimeModel,
    RequiredDocumentModel,
    SourceModel,
    StepModel,
    VisaTypeModel,
)


class SqlAlchemyStoreTransaction(IStoreTransaction):
    """All calls share one session; SqlAlchemyPageStore commits or rolls it back"""

    def __init__(self, session: Session):
        self._session = session

    def find_source(self, url: str) -> Optional[StoredSource]:
        model = self._session.query(SourceModel).filter(SourceModel.url_hash == url_hash(url)).first()
        return self._to_stored_source(model) if model else None

    def create_source(self, fetched: FetchedPage, content_hash: str) -> StoredSource:
        model = SourceModel(
            url=fetched.url,
            url_hash=url_hash(fetched.url),
            content_hash=content_hash,
            raw_html=fetched.html.encode('utf-8'),
            first_seen_at=fetched.fetched_at,
        )
        self._apply_fetch_metadata(model, fetched)
        self._session.add(model)
        self._session.flush()
        return self._to_stored_source(model)

    def update_source(self, source_id: int, fetched: FetchedPage, content_hash: Optional[str] = None) -> None:
        model = self._session.get(SourceModel, source_id)
        if model is None:
            raise StoreError(f"Source {source_id} not found", fetched.url)
        self._apply_fetch_metadata(model, fetched)
        if content_hash is not None:
            model.content_hash = content_hash
            model.raw_html = fetched.html.encode('utf-8')
        self._session.flush()

    def find_page(self, source_id: int) -> Optional[StoredPage]:
        model = self._session.query(PageModel).filter(PageModel.source_id == source_id).first()
        if model is None:
            return None
        return StoredPage(
            id=model.id,
            source_id=model.source_id,
            title=model.title,
            content_text=model.content_text or '',
        )

    def save_page(self, source_id: int, draft: PageDraft, page_id: Optional[int] = None) -> int:
        if page_id is None:
            model = PageModel(source_id=source_id)
            self._session.add(model)
        else:
            model = self._session.get(PageModel, page_id)
            if model is None:
                raise StoreError(f"Page {page_id} not found", draft.url)

        # regenerated as a whole, never patched
        model.title = draft.title
        model.slug = draft.slug
        model.summary = draft.summary
        model.content_text = draft.content_text
        model.content_markup = draft.content_markup
        model.last_updated_on = draft.last_updated
        model.updated_at = datetime.now()

        self._session.flush()
        return model.id

    def add_change(self, page_id: int, diff: DiffSummary, detected_at: datetime) -> None:
        self._session.add(ChangeModel(
            page_id=page_id,
            detected_at=detected_at,
            added_lines=diff.added_lines,
            removed_lines=diff.removed_lines,
            previews=list(diff.changes),
        ))
        self._session.flush()

    def replace_records(self, page_id: int, records: List[VisaTypeDraft]) -> int:
        # ORM deletes so the children cascade on every backend
        for existing in self._session.query(VisaTypeModel).filter(VisaTypeModel.page_id == page_id).all():
            self._session.delete(existing)
        self._session.flush()

        for record in records:
            self._session.add(self._to_visa_type_model(page_id, record))
        self._session.flush()
        return len(records)

    # ------------------ mapping ------------------

    @staticmethod
    def _apply_fetch_metadata(model: SourceModel, fetched: FetchedPage) -> None:
        model.http_status = fetched.status_code
        model.etag = fetched.etag
        model.last_modified_header = fetched.last_modified
        model.last_fetched_at = fetched.fetched_at

    @staticmethod
    def _to_stored_source(model: SourceModel) -> StoredSource:
        return StoredSource(
            id=model.id,
            url=model.url,
            url_hash=model.url_hash,
            content_hash=model.content_hash,
            last_fetched_at=model.last_fetched_at,
        )

    @staticmethod
    def _to_visa_type_model(page_id: int, record: VisaTypeDraft) -> VisaTypeModel:
        return VisaTypeModel(
            page_id=page_id,
            name=record.name,
            category=record.category,
            purpose=record.purpose,
            audience=record.audience,
            is_active=record.is_active,
            eligibility=[EligibilityCriterionModel(criterion=c) for c in record.eligibility],
            documents=[
                RequiredDocumentModel(doc_name=d.doc_name, notes=d.notes) for d in record.documents
            ],
            fees=[
                FeeModel(fee_name=f.fee_name, amount=f.amount, currency=f.currency, notes=f.notes)
                for f in record.fees
            ],
            processing_times=[
                ProcessingTimeModel(
                    timeline_label=t.timeline_label,
                    min_days=t.min_days,
                    max_days=t.max_days,
                    notes=t.notes,
                )
                for t in record.processing_times
            ],
            steps=[
                StepModel(step_order=s.step_order, step_title=s.step_title, step_detail=s.step_detail)
                for s in record.steps
            ],
            external_links=[
                ExternalLinkModel(link_title=link.link_title, link_url=link.link_url)
                for link in record.external_links
            ],
        )


class SqlAlchemyPageStore(IPageStore):
    """
    IPageStore on top of the Database handle.

    transaction() is the replace-children unit of work: one session, commit
    when the block exits normally, rollback on any exception, close always.
    Database errors surface as StoreError.
    """

    def __init__(self, database: Database):
        self._database = database

    @contextmanager
    def transaction(self) -> Iterator[SqlAlchemyStoreTransaction]:
        try:
            with self._database.session_scope() as session:
                yield SqlAlchemyStoreTransaction(session)
        except SQLAlchemyError as e:
            raise StoreError(f"Store transaction failed: {type(e).__name__} - {str(e)}") from e

    def get_stats(self) -> StoreStats:
        session = self._database.new_session()
        try:
            return StoreStats(
                total_sources=session.query(func.count(SourceModel.id)).scalar() or 0,
                total_pages=session.query(func.count(PageModel.id)).scalar() or 0,
                total_visa_types=session.query(func.count(VisaTypeModel.id)).scalar() or 0,
                last_scraped=session.query(func.max(SourceModel.last_fetched_at)).scalar(),
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Reading store statistics failed: {str(e)}") from e
        finally:
            session.close()
