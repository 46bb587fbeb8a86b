from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from ..models.case import CaseStatus, CasePriority
from ..models.evidence import EvidenceType
from .common import UserRef


class CaseCreate(BaseModel):
    case_number: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    priority: CasePriority = CasePriority.MEDIUM
    assigned_to_user_id: Optional[int] = None
    date_opened: Optional[datetime] = None
    tags: List[str] = []
    location: Optional[str] = None


class CaseUpdate(BaseModel):
    case_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[CaseStatus] = None
    priority: Optional[CasePriority] = None
    assigned_to_user_id: Optional[int] = None
    date_opened: Optional[datetime] = None
    date_closed: Optional[datetime] = None
    tags: Optional[List[str]] = None
    location: Optional[str] = None


class CaseResponse(BaseModel):
    id: int
    case_number: str
    title: str
    description: str
    status: CaseStatus
    priority: CasePriority
    assigned_to_user_id: Optional[int] = None
    created_by_user_id: int
    date_opened: datetime
    date_closed: Optional[datetime] = None
    tags: List[str] = []
    location: Optional[str] = None
    evidence_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EvidenceSummary(BaseModel):
    id: int
    evidence_id: str
    title: str
    type: EvidenceType
    file_url: Optional[str] = None
    collection_date: datetime

    model_config = ConfigDict(from_attributes=True)


class CaseDetailResponse(CaseResponse):
    created_by: Optional[UserRef] = None
    assigned_to: Optional[UserRef] = None
    evidence: List[EvidenceSummary] = []


class CaseRef(BaseModel):
    id: int
    case_number: str
    title: str

    model_config = ConfigDict(from_attributes=True)
