"""File Pydantic schemas."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from hrms.common.constants import FileStatus, FileType


class FileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    filename: str
    original_filename: str
    mime_type: Optional[str] = None
    file_size: int
    file_type: FileType
    status: FileStatus
    description: Optional[str] = None
    tags: Optional[str] = None
    is_public: bool
    download_count: int
    employee_id: Optional[uuid.UUID] = None
    expires_at: Optional[datetime] = None
    url: str
    created_at: datetime


class FileMetadata(FileResponse):
    checksum: Optional[str] = None
    file_path: str
    last_accessed_at: Optional[datetime] = None
    uploaded_by: Optional[uuid.UUID] = None
    updated_at: datetime


class BulkUploadItem(BaseModel):
    original_filename: Optional[str] = None
    file: Optional[FileResponse] = None
    error: Optional[str] = None


class TypeStatistics(BaseModel):
    count: int
    size: int


class FileStatistics(BaseModel):
    total_files: int
    total_size: int
    by_type: dict[str, TypeStatistics] = {}
