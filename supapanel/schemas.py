from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict
from uuid import UUID


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys (studioDomain, tailLines, ...)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ProjectCreate(CamelModel):
    name: str
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Project name is required')
        return v.strip()


class Project(CamelModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    status: str
    deploy_status: Optional[str] = None
    last_deploy_at: Optional[datetime] = None
    last_deploy_error: Optional[str] = None
    domain: Optional[str] = None
    domain_verified: bool = False
    studio_domain: Optional[str] = None
    studio_domain_verified: bool = False
    created_at: Optional[datetime] = None


class DomainUpdate(CamelModel):
    domain: Optional[str] = None
    studio_domain: Optional[str] = None


class DomainInfo(CamelModel):
    domain: Optional[str] = None
    verified: bool = False
    studio_domain: Optional[str] = None
    studio_verified: bool = False
    message: Optional[str] = None


class OrchestrationResult(CamelModel):
    success: bool
    status: str
    deploy_status: Optional[str] = None
    last_deploy_at: Optional[datetime] = None
    error: Optional[str] = None


class DockerStatus(CamelModel):
    status: str
    running_count: int = 0
    total_count: int = 0
    containers: Dict[str, str] = {}
    error: Optional[str] = None


class ProjectStatusResponse(CamelModel):
    project_status: str
    deploy_status: Optional[str] = None
    last_deploy_at: Optional[datetime] = None
    last_deploy_error: Optional[str] = None
    docker: DockerStatus
    status: str
    studio_url: Optional[str] = None


class LogsRequest(CamelModel):
    tail_lines: Optional[int] = None

    @field_validator('tail_lines')
    @classmethod
    def validate_tail_lines(cls, v):
        if v is not None and v <= 0:
            raise ValueError('tailLines must be positive')
        return v


class LogsResponse(CamelModel):
    logs: str


class PanelDomainUpdate(CamelModel):
    domain: Optional[str] = None


class PanelDomainInfo(CamelModel):
    domain: Optional[str] = None
    verified: bool = False
    message: Optional[str] = None


class DeleteResult(CamelModel):
    success: bool
    slug: Optional[str] = None
    message: Optional[str] = None