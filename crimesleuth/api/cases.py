from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.user import User
from ..schemas.case import CaseCreate, CaseUpdate, CaseResponse, CaseDetailResponse
from ..schemas.evidence import EvidenceCreate, EvidenceResponse
from ..schemas.common import Envelope, ListEnvelope, envelope
from ..services import cases as case_service
from ..services import evidence as evidence_service
from ..core.policy import Action
from .auth import get_current_user, require_action

router = APIRouter()


@router.post("/", response_model=Envelope[CaseResponse], status_code=status.HTTP_201_CREATED)
def create_case(
    payload: CaseCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open a new case owned by the caller"""
    case = case_service.create_case(db, payload, current_user)
    return envelope(CaseResponse.model_validate(case))


@router.get("/", response_model=ListEnvelope[Dict[str, Any]])
def list_cases(
    request: Request,
    page: int = 1,
    limit: Optional[int] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    current_user: User = Depends(require_action(Action.VIEW_CASE)),
    db: Session = Depends(get_db)
):
    """
    List cases. Filters: ``field=value``, ``field[gt|gte|lt|lte]=value``,
    ``field[in]=a,b``; ``select=f1,f2``; ``sort=f1,-f2``; ``page``/``limit``.
    """
    filters = case_service.parse_filters(request.query_params)
    fields = case_service.parse_select(select)
    items, _, pagination = case_service.list_cases(db, filters, page=page, limit=limit, sort=sort)
    data = [
        case_service.project(CaseResponse.model_validate(c).model_dump(mode="json"), fields)
        for c in items
    ]
    return {
        "success": True,
        "count": len(data),
        "pagination": pagination,
        "data": data,
    }


@router.get("/{case_id}", response_model=Envelope[CaseDetailResponse])
def get_case(
    case_id: int,
    current_user: User = Depends(require_action(Action.VIEW_CASE)),
    db: Session = Depends(get_db)
):
    """Case with its evidence summaries"""
    case = case_service.get_case(db, case_id)
    return envelope(CaseDetailResponse.model_validate(case))


@router.put("/{case_id}", response_model=Envelope[CaseResponse])
def update_case(
    case_id: int,
    payload: CaseUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case = case_service.update_case(db, case_id, payload, current_user)
    return envelope(CaseResponse.model_validate(case))


@router.delete("/{case_id}", response_model=Envelope[Dict[str, Any]])
def delete_case(
    case_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case_service.delete_case(db, case_id, current_user)
    return envelope({})


@router.get("/{case_id}/evidence", response_model=ListEnvelope[EvidenceResponse])
def list_case_evidence(
    case_id: int,
    current_user: User = Depends(require_action(Action.VIEW_CASE)),
    db: Session = Depends(get_db)
):
    items = evidence_service.list_evidence(db, case_id)
    return {
        "success": True,
        "count": len(items),
        "data": [EvidenceResponse.model_validate(e) for e in items],
    }


@router.post(
    "/{case_id}/evidence",
    response_model=Envelope[EvidenceResponse],
    status_code=status.HTTP_201_CREATED,
)
def add_evidence(
    case_id: int,
    payload: EvidenceCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    evidence = evidence_service.add_evidence(db, case_id, payload, current_user)
    return envelope(EvidenceResponse.model_validate(evidence))
