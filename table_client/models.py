from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from .database import Base
import datetime


class StoredTable(Base):
    __tablename__ = "storage_tables"

    name = Column(String(63), primary_key=True)
    created_at = Column(DateTime, default=lambda: datetime.datetime.now(datetime.timezone.utc))

    entities = relationship("StoredEntity", back_populates="table", cascade="all, delete-orphan")


class StoredEntity(Base):
    __tablename__ = "storage_entities"
    __table_args__ = (UniqueConstraint("table_name", "partition_key", "row_key", name="uq_entity_key"),)

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String(63), ForeignKey("storage_tables.name"), nullable=False, index=True)
    partition_key = Column(String(1024), nullable=False, index=True)
    row_key = Column(String(1024), nullable=False)
    # Properties as JSON minimal-metadata, the service's canonical form.
    payload = Column(Text, nullable=False)
    etag = Column(String(100), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    table = relationship("StoredTable", back_populates="entities")
