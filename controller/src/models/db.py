"""
Database tables for deployments and pipelines.

Pipeline steps are stored inside the pipeline row as a JSON document so a
step transition is persisted with a single write.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

JSONDocument = JSON().with_variant(JSONB(), "postgresql")

class DeploymentRecord(Base):
    __tablename__ = "deployments"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    repository_url = Column(String(500), nullable=False)
    branch = Column(String(255), nullable=False)
    target_project = Column(String(255), nullable=False)
    target_cluster = Column(String(255), nullable=False)
    target_namespace = Column(String(255), nullable=False)
    environment = Column(String(50), nullable=False)
    deployment_type = Column(String(50), nullable=False)
    config = Column(JSONDocument, nullable=False)
    status = Column(String(50), default="pending", index=True)
    created_by = Column(String(255))
    last_deployed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    pipelines = relationship(
        "PipelineRecord",
        back_populates="deployment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

class PipelineRecord(Base):
    __tablename__ = "pipelines"

    id = Column(String(36), primary_key=True)
    deployment_id = Column(
        String(36),
        ForeignKey("deployments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(50), default="pending", index=True)
    triggered_by = Column(String(255), nullable=False)
    steps = Column(JSONDocument, nullable=False)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    deployment = relationship("DeploymentRecord", back_populates="pipelines")
