"""Relational tables.

Every table carries an integer surrogate key `cumulus_id`; foreign keys are
named `<entity>_cumulus_id` and point at it.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from cumulus_api.db.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _created_at():
    return Column(DateTime(timezone=True), nullable=False, default=utcnow)


def _updated_at():
    return Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class PgCollection(Base):
    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("name", "version"),)

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    version = Column(String, nullable=False)
    process = Column(String)
    url_path = Column(String)
    duplicate_handling = Column(String)
    granule_id_validation_regex = Column(String)
    granule_id_extraction_regex = Column(String)
    sample_file_name = Column(String)
    files = Column(JSONType, nullable=False, default=list)
    meta = Column(JSONType)
    tags = Column(JSONType)
    created_at = _created_at()
    updated_at = _updated_at()


class PgProvider(Base):
    __tablename__ = "providers"

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    protocol = Column(String, nullable=False, default="s3")
    host = Column(String, nullable=False)
    port = Column(Integer)
    username = Column(String)
    password = Column(String)
    global_connection_limit = Column(Integer)
    private_key = Column(String)
    cm_key_id = Column(String)
    certificate_uri = Column(String)
    created_at = _created_at()
    updated_at = _updated_at()


class PgAsyncOperation(Base):
    __tablename__ = "async_operations"

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    description = Column(Text)
    operation_type = Column(String)
    status = Column(String, nullable=False)
    output = Column(JSONType)
    task_arn = Column(String)
    created_at = _created_at()
    updated_at = _updated_at()


class PgRule(Base):
    __tablename__ = "rules"

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    workflow = Column(String, nullable=False)
    collection_cumulus_id = Column(Integer, ForeignKey("collections.cumulus_id"))
    provider_cumulus_id = Column(Integer, ForeignKey("providers.cumulus_id"))
    enabled = Column(Boolean, nullable=False, default=True)
    type = Column(String, nullable=False)
    value = Column(String)
    arn = Column(String)
    log_event_arn = Column(String)
    execution_name_prefix = Column(String)
    queue_url = Column(String)
    payload = Column(JSONType)
    meta = Column(JSONType)
    tags = Column(JSONType)
    created_at = _created_at()
    updated_at = _updated_at()

    collection = relationship("PgCollection")
    provider = relationship("PgProvider")


class PgExecution(Base):
    __tablename__ = "executions"

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    arn = Column(String, nullable=False, unique=True)
    url = Column(Text)
    status = Column(String, nullable=False)
    workflow_name = Column(String)
    cumulus_version = Column(String)
    tasks = Column(JSONType)
    error = Column(JSONType)
    original_payload = Column(JSONType)
    final_payload = Column(JSONType)
    duration = Column(Float)
    timestamp = Column(DateTime(timezone=True))
    collection_cumulus_id = Column(Integer, ForeignKey("collections.cumulus_id"))
    async_operation_cumulus_id = Column(
        Integer, ForeignKey("async_operations.cumulus_id")
    )
    parent_cumulus_id = Column(
        Integer, ForeignKey("executions.cumulus_id", ondelete="SET NULL")
    )
    created_at = _created_at()
    updated_at = _updated_at()

    collection = relationship("PgCollection")
    async_operation = relationship("PgAsyncOperation")
    parent = relationship("PgExecution", remote_side=[cumulus_id])


granules_executions = Table(
    "granules_executions",
    Base.metadata,
    Column(
        "granule_cumulus_id",
        Integer,
        ForeignKey("granules.cumulus_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "execution_cumulus_id",
        Integer,
        ForeignKey("executions.cumulus_id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class PgPdr(Base):
    __tablename__ = "pdrs"

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    status = Column(String, nullable=False)
    progress = Column(Float)
    stats = Column(JSONType)
    pan_sent = Column(Boolean)
    pan_message = Column(Text)
    address = Column(Text)
    original_url = Column(Text)
    duration = Column(Float)
    timestamp = Column(DateTime(timezone=True))
    collection_cumulus_id = Column(
        Integer, ForeignKey("collections.cumulus_id"), nullable=False
    )
    provider_cumulus_id = Column(
        Integer, ForeignKey("providers.cumulus_id"), nullable=False
    )
    execution_cumulus_id = Column(
        Integer, ForeignKey("executions.cumulus_id", ondelete="SET NULL")
    )
    created_at = _created_at()
    updated_at = _updated_at()

    collection = relationship("PgCollection")
    provider = relationship("PgProvider")
    execution = relationship("PgExecution")


class PgGranule(Base):
    __tablename__ = "granules"
    __table_args__ = (UniqueConstraint("collection_cumulus_id", "granule_id"),)

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    granule_id = Column(String, nullable=False)
    status = Column(String, nullable=False)
    collection_cumulus_id = Column(
        Integer, ForeignKey("collections.cumulus_id"), nullable=False
    )
    provider_cumulus_id = Column(Integer, ForeignKey("providers.cumulus_id"))
    pdr_cumulus_id = Column(
        Integer, ForeignKey("pdrs.cumulus_id", ondelete="SET NULL")
    )
    # execution the granule currently belongs to, the links keep its history
    execution_cumulus_id = Column(
        Integer, ForeignKey("executions.cumulus_id", ondelete="SET NULL")
    )
    published = Column(Boolean, default=False)
    cmr_link = Column(Text)
    error = Column(JSONType)
    product_volume = Column(BigInteger)
    duration = Column(Float)
    time_to_process = Column(Float)
    time_to_archive = Column(Float)
    beginning_date_time = Column(DateTime(timezone=True))
    ending_date_time = Column(DateTime(timezone=True))
    production_date_time = Column(DateTime(timezone=True))
    last_update_date_time = Column(DateTime(timezone=True))
    processing_start_date_time = Column(DateTime(timezone=True))
    processing_end_date_time = Column(DateTime(timezone=True))
    query_fields = Column(JSONType)
    timestamp = Column(DateTime(timezone=True))
    created_at = _created_at()
    updated_at = _updated_at()

    collection = relationship("PgCollection")
    provider = relationship("PgProvider")
    pdr = relationship("PgPdr")
    execution = relationship("PgExecution", foreign_keys=[execution_cumulus_id])
    files = relationship(
        "PgFile",
        back_populates="granule",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PgFile.cumulus_id",
    )
    executions = relationship(
        "PgExecution",
        secondary=granules_executions,
        order_by="PgExecution.cumulus_id",
    )


class PgFile(Base):
    __tablename__ = "files"
    __table_args__ = (UniqueConstraint("bucket", "key"),)

    cumulus_id = Column(Integer, primary_key=True, autoincrement=True)
    granule_cumulus_id = Column(
        Integer, ForeignKey("granules.cumulus_id", ondelete="CASCADE"), nullable=False
    )
    bucket = Column(String)
    key = Column(String)
    file_name = Column(String)
    checksum_type = Column(String)
    checksum_value = Column(String)
    file_size = Column(BigInteger)
    type = Column(String)
    source = Column(Text)
    created_at = _created_at()
    updated_at = _updated_at()

    granule = relationship("PgGranule", back_populates="files")
