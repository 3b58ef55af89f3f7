from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID
import uuid
from .database import Base


class ProjectStatus:
    """Administrative (desired) status of a project, persisted on the record."""
    DRAFT = "draft"
    DEPLOYING = "deploying"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"

    ALL = (DRAFT, DEPLOYING, RUNNING, STOPPED, FAILED)


class Project(Base):
    __tablename__ = "projects"
    __mapper_args__ = {"eager_defaults": True}  # Timestamps readable after commit without a lazy load

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)  # Namespace for containers, files and routing config
    description = Column(Text, nullable=True)

    # Administrative status: draft, deploying, running, stopped, failed
    status = Column(String(20), default=ProjectStatus.DRAFT, nullable=False)

    # Last orchestration call audit trail
    deploy_status = Column(String(20), nullable=True)  # success, failed
    last_deploy_at = Column(DateTime(timezone=True), nullable=True)
    last_deploy_error = Column(Text, nullable=True)

    # API (Kong) domain
    domain = Column(String, nullable=True, index=True)
    domain_verified = Column(Boolean, default=False, nullable=False)

    # Studio domain (optional, separate from API)
    studio_domain = Column(String, nullable=True, index=True)
    studio_domain_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    env_vars = relationship(
        "EnvVar",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="EnvVar.key",
    )

    @property
    def env_map(self) -> dict:
        """Env vars as a plain key -> value dict."""
        return {env.key: env.value for env in self.env_vars}


class EnvVar(Base):
    """Environment variables of a project - source of truth for ports and credentials."""
    __tablename__ = "env_vars"
    __table_args__ = (UniqueConstraint("project_id", "key", name="uq_env_vars_project_key"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False, default="")

    project = relationship("Project", back_populates="env_vars")


class PanelSettings(Base):
    """Panel-wide key/value settings (panel_domain, panel_domain_verified)."""
    __tablename__ = "panel_settings"
    __mapper_args__ = {"eager_defaults": True}

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
