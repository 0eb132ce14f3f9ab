"""
Archive upload schemas (presign, complete, discard, download).
"""

from typing import Optional

from pydantic import Field

from socialvault.shared.schemas.common import BaseSchema, SuccessResponse
from socialvault.shared.schemas.job import JobResponse


class PresignUploadRequest(BaseSchema):
    file_name: str = Field(min_length=1, description="Original archive file name")
    file_size: int = Field(description="Archive size in bytes")
    file_type: Optional[str] = Field(default=None, description="MIME type reported by the browser")


class PresignUploadResponse(SuccessResponse):
    upload_url: str
    staged_path: str
    expires_in_seconds: int


class CompleteUploadRequest(BaseSchema):
    staged_path: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    file_type: Optional[str] = None
    file_size: int = 0
    username: Optional[str] = Field(default=None, description="Account handle the archive belongs to")
    preserve_archive_file: bool = True


class CompleteUploadResponse(SuccessResponse):
    job: JobResponse


class DiscardUploadRequest(BaseSchema):
    staged_path: str = Field(min_length=1)


class DiscardUploadResponse(SuccessResponse):
    staged_path: str


class DownloadResponse(SuccessResponse):
    download_url: str
    file_name: str
    expires_in_seconds: int
