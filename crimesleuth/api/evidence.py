import io
from typing import Optional
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.user import User
from ..schemas.analysis import AnalysisRequest
from ..schemas.evidence import (
    ChainVerification,
    CustodyEntryResponse,
    EvidenceDeleteResponse,
    EvidenceDetailResponse,
    EvidenceResponse,
    EvidenceUpdate,
)
from ..schemas.common import Envelope, ListEnvelope, envelope
from ..core.ml_client import MLClient, get_ml_client
from ..services import evidence as evidence_service
from ..services.custody import verify_evidence_chain
from ..core.policy import Action
from .auth import get_current_user, require_action

router = APIRouter()


@router.get("/", response_model=ListEnvelope[EvidenceResponse])
def list_evidence(
    case_id: Optional[int] = None,
    current_user: User = Depends(require_action(Action.VIEW_EVIDENCE)),
    db: Session = Depends(get_db)
):
    """List evidence, optionally scoped to one case"""
    items = evidence_service.list_evidence(db, case_id)
    return {
        "success": True,
        "count": len(items),
        "data": [EvidenceResponse.model_validate(e) for e in items],
    }


@router.get("/{evidence_id}", response_model=Envelope[EvidenceDetailResponse])
def get_evidence(
    evidence_id: int,
    current_user: User = Depends(require_action(Action.VIEW_EVIDENCE)),
    db: Session = Depends(get_db)
):
    """Get evidence details"""
    evidence = evidence_service.get_evidence_detail(db, evidence_id)
    return envelope(EvidenceDetailResponse.model_validate(evidence))


@router.put("/{evidence_id}", response_model=Envelope[EvidenceDetailResponse])
def update_evidence(
    evidence_id: int,
    payload: EvidenceUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update evidence and append an "updated" custody entry"""
    evidence = evidence_service.update_evidence(db, evidence_id, payload, current_user)
    return envelope(EvidenceDetailResponse.model_validate(evidence))


@router.delete("/{evidence_id}", response_model=Envelope[EvidenceDeleteResponse])
def delete_evidence(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    warnings = evidence_service.delete_evidence(db, evidence_id, current_user)
    return envelope(EvidenceDeleteResponse(id=evidence_id, warnings=warnings))


@router.post("/{evidence_id}/analyze", response_model=Envelope[EvidenceDetailResponse])
def analyze_evidence(
    evidence_id: int,
    payload: AnalysisRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ml_client: MLClient = Depends(get_ml_client)
):
    """Record an analysis result and an "analyzed" custody entry"""
    evidence = evidence_service.analyze(db, evidence_id, payload, current_user, ml_client=ml_client)
    return envelope(EvidenceDetailResponse.model_validate(evidence))


@router.post("/{evidence_id}/upload", response_model=Envelope[EvidenceDetailResponse])
async def upload_evidence_file(
    evidence_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Attach an encrypted file to the evidence"""
    content = await file.read()
    evidence = evidence_service.upload_evidence_file(
        db, evidence_id, content, file.filename or "upload", file.content_type, current_user
    )
    return envelope(EvidenceDetailResponse.model_validate(evidence))


@router.get("/{evidence_id}/download")
def download_evidence_file(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Stream the decrypted file after an integrity check"""
    content, media_type, headers = evidence_service.download_evidence_file(db, evidence_id, current_user)
    return StreamingResponse(io.BytesIO(content), media_type=media_type, headers=headers)


@router.get("/{evidence_id}/chain", response_model=ListEnvelope[CustodyEntryResponse])
def get_chain(
    evidence_id: int,
    current_user: User = Depends(require_action(Action.VIEW_EVIDENCE)),
    db: Session = Depends(get_db)
):
    """Chain of custody in append order"""
    evidence = evidence_service.get_evidence_detail(db, evidence_id)
    return {
        "success": True,
        "count": len(evidence.chain),
        "data": [CustodyEntryResponse.model_validate(e) for e in evidence.chain],
    }


@router.get("/{evidence_id}/chain/verify", response_model=Envelope[ChainVerification])
def verify_chain(
    evidence_id: int,
    current_user: User = Depends(require_action(Action.VIEW_EVIDENCE)),
    db: Session = Depends(get_db)
):
    """Verify the integrity of the custody hash chain"""
    evidence = evidence_service.get_evidence_detail(db, evidence_id)
    return envelope(ChainVerification(**verify_evidence_chain(evidence)))
