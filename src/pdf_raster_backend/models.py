from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobDetail(CamelModel):
    id: int
    directory_id: str
    status: JobStatus
    progress: int = 0
    processed_pages: int = 0
    total_pages: int = 0
    current_page: int = 0
    output_path: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    errors: List[str] = []
    compression_ratio: Optional[float] = None


class UploadResponse(CamelModel):
    message: str
    job_id: int
    directory_id: str


class HealthResponse(CamelModel):
    status: str
    version: str
    active_jobs: int
    uptime: float


class CleanupResponse(CamelModel):
    message: str
    deleted: int


class ConfigResponse(CamelModel):
    config: Dict[str, Any]
