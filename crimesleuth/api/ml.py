from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.case import Case
from ..models.user import User
from ..schemas.analysis import CaseReportRequest, CaseReportResponse, ImageSummaryResponse
from ..schemas.common import Envelope, envelope
from ..core.errors import NotFoundError, ValidationError
from ..core.ml_client import MLClient, get_ml_client
from .auth import get_current_user

router = APIRouter()


@router.get("/health")
def ml_health(ml_client: MLClient = Depends(get_ml_client)):
    """Report whether the ML service answers its health check"""
    ml_client.health()
    return {"success": True, "data": "ML service is available"}


@router.post("/generate-summary", response_model=Envelope[ImageSummaryResponse])
async def generate_summary(
    case_id: str = Form(...),
    image_id: str = Form(...),
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    ml_client: MLClient = Depends(get_ml_client)
):
    """Proxy an image to the ML service for a forensic summary"""
    content = await image.read()
    if not content:
        raise ValidationError("No image file provided")
    summary = ml_client.generate_summary(
        case_id=case_id,
        image_id=image_id,
        image=content,
        filename=image.filename or "image",
        content_type=image.content_type or "application/octet-stream",
    )
    return envelope(ImageSummaryResponse(**summary))


@router.post("/generate-case-report", response_model=Envelope[CaseReportResponse])
def generate_case_report(
    payload: CaseReportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ml_client: MLClient = Depends(get_ml_client)
):
    if not db.query(Case.id).filter(Case.id == payload.case_id).first():
        raise NotFoundError(f"Case not found with id of {payload.case_id}")
    report = ml_client.generate_case_report(str(payload.case_id))
    return envelope(CaseReportResponse(case_id=payload.case_id, report=report["report"]))
