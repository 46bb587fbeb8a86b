from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from .common import UserRef


class AnalysisRequest(BaseModel):
    analysis_type: str = "basic"
    result: Optional[str] = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    notes: Optional[str] = None
    # Send the stored image to the ML service and record its summary
    run_model: bool = False


class AnalysisResultResponse(BaseModel):
    id: int
    type: str
    result: str
    analyst_user_id: int
    analyst: Optional[UserRef] = None
    confidence: float
    notes: Optional[str] = None
    ts_utc: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ImageSummaryResponse(BaseModel):
    summary: str
    objects_detected: List[str] = []
    crime_type: str


class CaseReportRequest(BaseModel):
    case_id: int


class CaseReportResponse(BaseModel):
    case_id: int
    report: Optional[str] = None
