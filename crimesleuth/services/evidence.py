"""
Evidence and chain-of-custody manager.

Evidence is attached to exactly one Case. Every mutation appends one
custody entry in the same transaction as the change it records, and the
owning Case's ``evidence_count`` is adjusted with an atomic SQL increment
in the same transaction as the insert or delete.
"""

from __future__ import annotations

import logging
import unicodedata
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from cryptography.exceptions import InvalidTag
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.errors import CrimeSleuthError, NotFoundError, ValidationError
from ..core.ml_client import MLClient
from ..core.policy import Action, authorize
from ..core.storage import compute_sha256, delete_file, read_file, store_file
from ..models.analysis import AnalysisResult
from ..models.case import Case
from ..models.custody import CustodyEntry
from ..models.evidence import Evidence, EvidenceType
from ..models.user import User
from ..schemas.analysis import AnalysisRequest
from ..schemas.evidence import EvidenceCreate, EvidenceUpdate
from .custody import append_custody_entry

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = ("type", "title", "collection_date", "tags")


def _integrity_message(exc: IntegrityError) -> str:
    msg = str(exc.orig)
    if "evidence_id" in msg and "sequence" not in msg:
        return "Duplicate evidence ID"
    if "sequence" in msg:
        return "Concurrent chain-of-custody update, retry the request"
    return "Duplicate key"


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(_integrity_message(exc))


def _get_or_404(db: Session, evidence_id: int) -> Evidence:
    evidence = db.query(Evidence).filter(Evidence.id == evidence_id).first()
    if not evidence:
        raise NotFoundError(f"Evidence not found with id of {evidence_id}")
    return evidence


def _adjust_evidence_count(db: Session, case_id: int, delta: int) -> None:
    db.query(Case).filter(Case.id == case_id).update(
        {Case.evidence_count: Case.evidence_count + delta},
        synchronize_session=False,
    )


def add_evidence(db: Session, case_id: int, data: EvidenceCreate, acting_user: User) -> Evidence:
    authorize(acting_user, Action.ADD_EVIDENCE)
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFoundError(f"Case not found with id of {case_id}")

    if db.query(Evidence.id).filter(Evidence.evidence_id == data.evidence_id).first():
        raise ValidationError(f"Evidence ID {data.evidence_id} already exists")

    evidence = Evidence(
        evidence_id=data.evidence_id,
        case_id=case.id,
        type=data.type,
        title=data.title,
        description=data.description,
        file_url=data.file_url,
        file_type=data.file_type,
        file_size=data.file_size,
        metadata_json=data.metadata,
        location=data.location,
        collected_by_user_id=acting_user.id,
        collection_date=data.collection_date or datetime.now(timezone.utc),
        tags=list(data.tags),
    )
    db.add(evidence)
    _adjust_evidence_count(db, case.id, 1)
    _commit(db)
    db.refresh(evidence)
    logger.info("Evidence %s added to case %s by user %s", evidence.evidence_id, case.id, acting_user.id)
    return evidence


def list_evidence(db: Session, case_id: Optional[int] = None) -> List[Evidence]:
    query = db.query(Evidence).options(selectinload(Evidence.collected_by))
    if case_id is not None:
        if not db.query(Case.id).filter(Case.id == case_id).first():
            raise NotFoundError(f"Case not found with id of {case_id}")
        query = query.filter(Evidence.case_id == case_id)
    return query.order_by(Evidence.id.asc()).all()


def get_evidence_detail(db: Session, evidence_id: int) -> Evidence:
    evidence = (
        db.query(Evidence)
        .options(
            selectinload(Evidence.case),
            selectinload(Evidence.collected_by),
            selectinload(Evidence.chain).selectinload(CustodyEntry.handled_by),
            selectinload(Evidence.analysis_results).selectinload(AnalysisResult.analyst),
        )
        .filter(Evidence.id == evidence_id)
        .first()
    )
    if not evidence:
        raise NotFoundError(f"Evidence not found with id of {evidence_id}")
    return evidence


def update_evidence(db: Session, evidence_id: int, patch: EvidenceUpdate, acting_user: User) -> Evidence:
    evidence = _get_or_404(db, evidence_id)
    authorize(acting_user, Action.UPDATE_EVIDENCE)

    changes = patch.model_dump(exclude_unset=True)
    if "chain" in changes:
        raise ValidationError("Chain of custody is append-only and cannot be replaced")
    notes = changes.pop("notes", None)
    for field in NON_NULLABLE_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if "metadata" in changes:
        changes["metadata_json"] = changes.pop("metadata")

    append_custody_entry(db, evidence, acting_user, "updated", notes or "Evidence details updated")
    for field, value in changes.items():
        setattr(evidence, field, value)

    _commit(db)
    return get_evidence_detail(db, evidence_id)


def delete_evidence(db: Session, evidence_id: int, acting_user: User) -> List[str]:
    """
    Delete the record and adjust the case counter atomically, then remove
    any stored file. Returns warnings for file cleanup that failed.
    """
    evidence = _get_or_404(db, evidence_id)
    authorize(acting_user, Action.DELETE_EVIDENCE)

    file_path = evidence.file_path
    case_id = evidence.case_id
    db.delete(evidence)
    _adjust_evidence_count(db, case_id, -1)
    db.commit()
    logger.info("Evidence %s deleted from case %s by user %s", evidence_id, case_id, acting_user.id)

    warnings = []
    if file_path:
        try:
            delete_file(file_path)
        except OSError as exc:
            logger.warning("Could not delete stored file for evidence %s: %s", evidence_id, exc)
            warnings.append(f"Stored file could not be deleted: {exc}")
    return warnings


def _validate_upload(content: bytes, content_type: Optional[str]) -> None:
    if content_type not in settings.allowed_mime_types:
        raise ValidationError(f"File type {content_type} not allowed")
    if len(content) > settings.max_file_size:
        raise ValidationError(f"File size exceeds maximum of {settings.max_file_size} bytes")
    if not content:
        raise ValidationError("Uploaded file is empty")


def upload_evidence_file(
    db: Session,
    evidence_id: int,
    content: bytes,
    filename: str,
    content_type: Optional[str],
    acting_user: User,
) -> Evidence:
    evidence = _get_or_404(db, evidence_id)
    authorize(acting_user, Action.UPLOAD_EVIDENCE_FILE)
    _validate_upload(content, content_type)

    cipher_filename, sha256_hex = store_file(content)
    previous = evidence.file_path

    evidence.file_url = f"/evidence/{evidence.id}/download"
    evidence.file_type = content_type
    evidence.file_size = len(content)
    evidence.file_path = cipher_filename
    evidence.file_sha256 = sha256_hex
    evidence.metadata_json = {**(evidence.metadata_json or {}), "original_filename": filename}
    append_custody_entry(db, evidence, acting_user, "file_uploaded", f"Uploaded {filename} (sha256 {sha256_hex})")

    try:
        _commit(db)
    except CrimeSleuthError:
        delete_file(cipher_filename)
        raise

    if previous:
        try:
            delete_file(previous)
        except OSError as exc:
            logger.warning("Could not delete replaced file for evidence %s: %s", evidence_id, exc)
    return get_evidence_detail(db, evidence_id)


def _load_stored_file(evidence: Evidence) -> bytes:
    if not evidence.file_path:
        raise NotFoundError(f"Evidence {evidence.id} has no stored file")
    try:
        content = read_file(evidence.file_path)
    except FileNotFoundError:
        raise CrimeSleuthError("Encrypted file not found on disk")
    except InvalidTag:
        logger.error("Stored blob for evidence %s failed authenticated decryption", evidence.id)
        raise CrimeSleuthError("File integrity check failed")
    if compute_sha256(content) != evidence.file_sha256:
        raise CrimeSleuthError("File integrity check failed")
    return content


def content_disposition(filename: str) -> str:
    """
    Attachment header carrying an ASCII fallback name plus the RFC 5987
    ``filename*`` form, so any stored filename can be sent.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = "".join(c for c in ascii_name if c.isprintable() and c not in '"\\').strip() or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def download_evidence_file(
    db: Session, evidence_id: int, acting_user: User
) -> Tuple[bytes, str, Dict[str, str]]:
    """
    Returns (content, media type, response headers). The access is logged
    only once everything the response needs has been prepared.
    """
    evidence = _get_or_404(db, evidence_id)
    authorize(acting_user, Action.VIEW_EVIDENCE)
    content = _load_stored_file(evidence)

    filename = (evidence.metadata_json or {}).get("original_filename") or f"{evidence.evidence_id}.bin"
    media_type = evidence.file_type or "application/octet-stream"
    headers = {"Content-Disposition": content_disposition(filename)}

    append_custody_entry(db, evidence, acting_user, "file_accessed", f"Downloaded {filename}")
    _commit(db)
    return content, media_type, headers


def analyze(
    db: Session,
    evidence_id: int,
    data: AnalysisRequest,
    acting_user: User,
    ml_client: Optional[MLClient] = None,
) -> Evidence:
    """
    Append one Analysis Result and one "analyzed" custody entry, committed
    together. With ``run_model`` the stored image goes to the ML service
    first; an upstream failure leaves the evidence untouched.
    """
    evidence = _get_or_404(db, evidence_id)
    authorize(acting_user, Action.ANALYZE_EVIDENCE)

    analysis_type = data.analysis_type or "basic"
    result = data.result or "Analysis pending"
    notes = data.notes or "Analysis requested"

    if data.run_model:
        if evidence.type != EvidenceType.IMAGE:
            raise ValidationError("Model analysis is only available for image evidence")
        content = _load_stored_file(evidence)
        summary = (ml_client or MLClient()).generate_summary(
            case_id=str(evidence.case_id),
            image_id=evidence.evidence_id,
            image=content,
            filename=(evidence.metadata_json or {}).get("original_filename", evidence.evidence_id),
            content_type=evidence.file_type or "application/octet-stream",
        )
        result = data.result or summary["summary"]
        notes = data.notes or (
            f"Crime type: {summary['crime_type']}; "
            f"objects detected: {', '.join(summary['objects_detected']) or 'none'}"
        )

    evidence.analysis_results.append(
        AnalysisResult(
            type=analysis_type,
            result=result,
            analyst_user_id=acting_user.id,
            confidence=data.confidence,
            notes=notes,
            ts_utc=datetime.now(timezone.utc),
        )
    )
    append_custody_entry(
        db, evidence, acting_user, "analyzed", f"Analysis of type {analysis_type} conducted"
    )
    _commit(db)
    return get_evidence_detail(db, evidence_id)
