"""Request and response models for the REST API."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

# RFC 1123 label (namespaces) and subdomain (object names)
_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_DNS_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


class ResourceRequest(BaseModel):
    """Identifies one Kustomization or HelmRelease."""

    kind: str = Field(default="Kustomization", min_length=1, max_length=63)
    namespace: str = Field(..., min_length=1, max_length=63)
    name: str = Field(..., min_length=1, max_length=253)

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        if not _DNS_LABEL.fullmatch(v):
            raise ValueError(f"namespace must be a DNS-1123 label, got {v!r}")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not _DNS_SUBDOMAIN.fullmatch(v):
            raise ValueError(f"name must be a DNS-1123 subdomain, got {v!r}")
        return v


class DiagnosisResponse(BaseModel):
    """Rendered report text."""

    report: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ErrorResponse(BaseModel):
    """Error envelope used by every non-2xx response."""

    error: str
    detail: str
