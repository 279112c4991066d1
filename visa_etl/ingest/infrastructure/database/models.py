from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.mysql import LONGBLOB, LONGTEXT
from sqlalchemy.orm import relationship

from visa_etl.shared.db_manager import Base

LongText = Text().with_variant(LONGTEXT, "mysql")
LongBlob = LargeBinary().with_variant(LONGBLOB, "mysql")


class SourceModel(Base):
    __tablename__ = "sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False, comment="Normalized URL")
    url_hash = Column(String(64), nullable=False, unique=True, comment="sha256 of the URL")
    content_hash = Column(String(64), nullable=True, comment="sha256 of the raw HTML")
    http_status = Column(Integer, nullable=True)
    etag = Column(String(255), nullable=True)
    last_modified_header = Column(String(255), nullable=True)
    raw_html = Column(LongBlob, nullable=True)

    first_seen_at = Column(DateTime, default=datetime.now, comment="First successful load")
    last_fetched_at = Column(DateTime, default=datetime.now, comment="Most recent fetch")

    # Relationship
    page = relationship("PageModel", back_populates="source", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SourceModel(id={self.id}, url={self.url})>"


class PageModel(Base):
    __tablename__ = "pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_id = Column(Integer, ForeignKey("sources.id"), nullable=False, unique=True, index=True)

    title = Column(String(500), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    summary = Column(String(2000), nullable=True)
    content_text = Column(LongText, nullable=False, default="")
    content_markup = Column(LongText, nullable=True)
    last_updated_on = Column(DateTime, nullable=True, comment="From page metadata, not fetch time")

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationship
    source = relationship("SourceModel", back_populates="page")
    visa_types = relationship(
        "VisaTypeModel",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="VisaTypeModel.id",
    )
    # Change rows are an audit trail: no cascade
    changes = relationship("ChangeModel", back_populates="page", order_by="ChangeModel.id")

    def __repr__(self):
        return f"<PageModel(id={self.id}, title={self.title})>"


class VisaTypeModel(Base):
    __tablename__ = "visa_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("pages.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False, default="other")
    purpose = Column(String(200), nullable=True)
    audience = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationship
    page = relationship("PageModel", back_populates="visa_types")
    eligibility = relationship(
        "EligibilityCriterionModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="EligibilityCriterionModel.id",
    )
    documents = relationship(
        "RequiredDocumentModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="RequiredDocumentModel.id",
    )
    fees = relationship(
        "FeeModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="FeeModel.id",
    )
    processing_times = relationship(
        "ProcessingTimeModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="ProcessingTimeModel.id",
    )
    steps = relationship(
        "StepModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="StepModel.step_order",
    )
    external_links = relationship(
        "ExternalLinkModel", back_populates="visa_type",
        cascade="all, delete-orphan", order_by="ExternalLinkModel.id",
    )

    def __repr__(self):
        return f"<VisaTypeModel(id={self.id}, name={self.name}, category={self.category})>"


class EligibilityCriterionModel(Base):
    __tablename__ = "eligibility_criteria"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    criterion = Column(Text, nullable=False)

    visa_type = relationship("VisaTypeModel", back_populates="eligibility")


class RequiredDocumentModel(Base):
    __tablename__ = "required_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    doc_name = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)

    visa_type = relationship("VisaTypeModel", back_populates="documents")


class FeeModel(Base):
    __tablename__ = "fees"
    __table_args__ = (
        CheckConstraint("amount IS NULL OR amount >= 0", name="ck_fees_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    fee_name = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(10), nullable=False, default="QAR")
    notes = Column(Text, nullable=True)

    visa_type = relationship("VisaTypeModel", back_populates="fees")


class ProcessingTimeModel(Base):
    __tablename__ = "processing_times"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    timeline_label = Column(String(255), nullable=False)
    min_days = Column(Integer, nullable=True)
    max_days = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    visa_type = relationship("VisaTypeModel", back_populates="processing_times")


class StepModel(Base):
    __tablename__ = "steps"
    __table_args__ = (
        UniqueConstraint("visa_type_id", "step_order", name="uq_steps_visa_type_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    step_title = Column(String(500), nullable=False)
    step_detail = Column(Text, nullable=True)

    visa_type = relationship("VisaTypeModel", back_populates="steps")


class ExternalLinkModel(Base):
    __tablename__ = "external_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visa_type_id = Column(Integer, ForeignKey("visa_types.id"), nullable=False, index=True)
    link_title = Column(String(500), nullable=False)
    link_url = Column(Text, nullable=False)

    visa_type = relationship("VisaTypeModel", back_populates="external_links")


class ChangeModel(Base):
    """Append-only: rows are inserted once and never updated or deleted"""
    __tablename__ = "changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("pages.id"), nullable=False, index=True)
    detected_at = Column(DateTime, nullable=False, default=datetime.now)
    added_lines = Column(Integer, nullable=False, default=0)
    removed_lines = Column(Integer, nullable=False, default=0)
    previews = Column(JSON, nullable=True, comment="At most 10 '+ '/'- ' line previews")

    page = relationship("PageModel", back_populates="changes")

    def __repr__(self):
        return f"<ChangeModel(id={self.id}, page_id={self.page_id}, +{self.added_lines}/-{self.removed_lines})>"
