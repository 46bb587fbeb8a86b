from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from ..models.evidence import EvidenceType
from .common import UserRef
from .case import CaseRef
from .analysis import AnalysisResultResponse


class EvidenceCreate(BaseModel):
    evidence_id: str = Field(min_length=1, max_length=100)
    type: EvidenceType
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[Dict[str, Any]] = None
    location: Optional[str] = None
    collection_date: Optional[datetime] = None
    tags: List[str] = []


class EvidenceUpdate(BaseModel):
    type: Optional[EvidenceType] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[Dict[str, Any]] = None
    location: Optional[str] = None
    collection_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    # Recorded on the custody entry, not on the evidence
    notes: Optional[str] = None
    # Accepted only to be refused: the ledger is append-only
    chain: Optional[List[Any]] = None


class CustodyEntryResponse(BaseModel):
    id: int
    sequence: int
    handled_by_user_id: int
    handled_by: Optional[UserRef] = None
    action: str
    notes: Optional[str] = None
    ts_utc: datetime
    prev_hash_hex: str
    entry_hash_hex: str

    model_config = ConfigDict(from_attributes=True)


class EvidenceResponse(BaseModel):
    id: int
    evidence_id: str
    case_id: int
    type: EvidenceType
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    file_sha256: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")
    location: Optional[str] = None
    collected_by_user_id: Optional[int] = None
    collected_by: Optional[UserRef] = None
    collection_date: datetime
    tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    chain: List[CustodyEntryResponse] = []
    analysis_results: List[AnalysisResultResponse] = []

    model_config = ConfigDict(from_attributes=True)


class EvidenceDetailResponse(EvidenceResponse):
    case: CaseRef


class EvidenceDeleteResponse(BaseModel):
    id: int
    warnings: List[str] = []


class ChainVerification(BaseModel):
    evidence_id: int
    chain_valid: bool
    total_entries: int
    verification_details: List[Dict[str, Any]]
