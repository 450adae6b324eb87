"""Document Pydantic schemas."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.common.constants import DocumentApprovalStatus


# ── Types / categories ──────────────────────────────────────────────

class DocumentTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    allowed_file_types: Optional[str] = Field(None, max_length=255, examples=["pdf,doc,docx"])
    max_file_size_mb: int = Field(10, ge=1, le=1024)
    requires_approval: bool = False
    active: bool = True


class DocumentTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    allowed_file_types: Optional[str] = Field(None, max_length=255)
    max_file_size_mb: Optional[int] = Field(None, ge=1, le=1024)
    requires_approval: Optional[bool] = None
    active: Optional[bool] = None


class DocumentTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    allowed_file_types: Optional[str] = None
    max_file_size_mb: int
    requires_approval: bool
    active: bool
    created_at: datetime
    updated_at: datetime


class DocumentCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, max_length=50)
    icon: Optional[str] = Field(None, max_length=50)
    active: bool = True


class DocumentCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, max_length=50)
    icon: Optional[str] = Field(None, max_length=50)
    active: Optional[bool] = None


class DocumentCategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool
    created_at: datetime
    updated_at: datetime


# ── Documents ───────────────────────────────────────────────────────

class DocumentCreate(BaseModel):
    """Metadata-only document (no file attached)."""

    employee_id: uuid.UUID
    document_type_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    expiry_date: Optional[date] = None
    confidential: bool = False
    tags: Optional[str] = Field(None, max_length=500)


class DocumentUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    expiry_date: Optional[date] = None
    confidential: Optional[bool] = None
    tags: Optional[str] = Field(None, max_length=500)


class DocumentReview(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    document_type_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    name: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    description: Optional[str] = None
    expiry_date: Optional[date] = None
    expired: bool = False
    confidential: bool
    tags: Optional[str] = None
    version: int
    approval_status: DocumentApprovalStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejected_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_notes: Optional[str] = None
    uploaded_by: Optional[uuid.UUID] = None
    active: bool
    created_at: datetime
    updated_at: datetime


class EmployeeDocumentStats(BaseModel):
    employee_id: uuid.UUID
    document_count: int
    total_size: int
