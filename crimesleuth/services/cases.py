"""
Case lifecycle manager.

Create, list, fetch, update and delete Cases. Every write is authorized
through ``core.policy`` and committed in a single transaction; uniqueness
conflicts reported by the store surface as ``ValidationError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.errors import NotFoundError, ValidationError
from ..core.policy import Action, authorize
from ..models.case import CLOSED_STATUSES, Case, CasePriority, CaseStatus
from ..models.user import User
from ..schemas.case import CaseCreate, CaseUpdate

logger = logging.getLogger(__name__)

RESERVED_PARAMS = frozenset({"select", "sort", "page", "limit"})
DEFAULT_SORT = "-date_opened"


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# Filterable / sortable / selectable fields and how query-string values coerce
FIELD_TYPES: Dict[str, Callable[[str], Any]] = {
    "id": int,
    "case_number": str,
    "title": str,
    "description": str,
    "status": CaseStatus,
    "priority": CasePriority,
    "assigned_to_user_id": int,
    "created_by_user_id": int,
    "date_opened": _parse_datetime,
    "date_closed": _parse_datetime,
    "location": str,
    "evidence_count": int,
    "created_at": _parse_datetime,
    "updated_at": _parse_datetime,
}

OPERATORS = {
    "eq": lambda col, v: col == v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "in": lambda col, v: col.in_(v),
}


def _integrity_message(exc: IntegrityError) -> str:
    if "case_number" in str(exc.orig):
        return "Duplicate case number"
    return "Duplicate key"


def _get_or_404(db: Session, case_id: int) -> Case:
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFoundError(f"Case not found with id of {case_id}")
    return case


def _ensure_user_exists(db: Session, user_id: Optional[int]) -> None:
    if user_id is not None and not db.query(User.id).filter(User.id == user_id).first():
        raise ValidationError(f"Assigned user {user_id} does not exist")


def create_case(db: Session, data: CaseCreate, acting_user: User) -> Case:
    authorize(acting_user, Action.CREATE_CASE)
    _ensure_user_exists(db, data.assigned_to_user_id)

    if db.query(Case.id).filter(Case.case_number == data.case_number).first():
        raise ValidationError(f"Case number {data.case_number} already exists")

    case = Case(
        case_number=data.case_number,
        title=data.title,
        description=data.description,
        status=CaseStatus.OPEN,
        priority=data.priority,
        assigned_to_user_id=data.assigned_to_user_id,
        created_by_user_id=acting_user.id,
        date_opened=data.date_opened or datetime.now(timezone.utc),
        tags=list(data.tags),
        location=data.location,
        evidence_count=0,
    )
    db.add(case)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(_integrity_message(exc))
    db.refresh(case)
    logger.info("Case %s (%s) created by user %s", case.id, case.case_number, acting_user.id)
    return case


def parse_filters(params: Mapping[str, str]) -> List[Tuple[str, str, Any]]:
    """
    Turn query parameters into (field, operator, value) triples.
    Accepts ``field=value`` and ``field[op]=value``; ``in`` takes a
    comma-separated list.
    """
    filters = []
    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue
        op = "eq"
        field = key
        if key.endswith("]") and "[" in key:
            field, op = key[:-1].split("[", 1)
        if field not in FIELD_TYPES:
            raise ValidationError(f"Cannot filter on unknown field '{field}'")
        if op not in OPERATORS:
            raise ValidationError(f"Unknown filter operator '{op}'")
        coerce = FIELD_TYPES[field]
        try:
            if op == "in":
                value = [coerce(v.strip()) for v in raw.split(",") if v.strip()]
            else:
                value = coerce(raw)
        except ValueError:
            raise ValidationError(f"Invalid value '{raw}' for field '{field}'")
        filters.append((field, op, value))
    return filters


def parse_sort(sort: Optional[str]) -> List[Any]:
    order = []
    for key in (sort or DEFAULT_SORT).split(","):
        key = key.strip()
        if not key:
            continue
        descending = key.startswith("-")
        field = key.lstrip("-+")
        if field not in FIELD_TYPES:
            raise ValidationError(f"Cannot sort on unknown field '{field}'")
        column = getattr(Case, field)
        order.append(column.desc() if descending else column.asc())
    # Stable paging for equal sort keys
    order.append(Case.id.asc())
    return order


def parse_select(select: Optional[str]) -> Optional[List[str]]:
    if not select:
        return None
    fields = [f.strip() for f in select.split(",") if f.strip()]
    unknown = [f for f in fields if f not in FIELD_TYPES and f != "tags"]
    if unknown:
        raise ValidationError(f"Cannot select unknown field(s): {', '.join(unknown)}")
    if "id" not in fields:
        fields.insert(0, "id")
    return fields


def list_cases(
    db: Session,
    filters: List[Tuple[str, str, Any]],
    page: int = 1,
    limit: Optional[int] = None,
    sort: Optional[str] = None,
) -> Tuple[List[Case], int, Dict[str, Any]]:
    """
    Returns (items, total, pagination). ``pagination`` holds ``total`` and,
    when they exist, ``next``/``prev`` page references.
    """
    if limit is None:
        limit = settings.default_page_limit
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > settings.max_page_limit:
        raise ValidationError(f"limit must be between 1 and {settings.max_page_limit}")

    query = db.query(Case)
    for field, op, value in filters:
        query = query.filter(OPERATORS[op](getattr(Case, field), value))

    total = query.count()
    start = (page - 1) * limit
    items = query.order_by(*parse_sort(sort)).offset(start).limit(limit).all()

    pagination: Dict[str, Any] = {"total": total}
    if start + limit < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}
    return items, total, pagination


def get_case(db: Session, case_id: int) -> Case:
    case = (
        db.query(Case)
        .options(selectinload(Case.evidence), selectinload(Case.created_by), selectinload(Case.assigned_to))
        .filter(Case.id == case_id)
        .first()
    )
    if not case:
        raise NotFoundError(f"Case not found with id of {case_id}")
    return case


def update_case(db: Session, case_id: int, patch: CaseUpdate, acting_user: User) -> Case:
    case = _get_or_404(db, case_id)
    authorize(acting_user, Action.UPDATE_CASE, owner_id=case.created_by_user_id)

    changes = patch.model_dump(exclude_unset=True)
    for field in ("case_number", "title", "description", "status", "priority"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if "assigned_to_user_id" in changes:
        _ensure_user_exists(db, changes["assigned_to_user_id"])

    new_number = changes.get("case_number")
    if new_number and new_number != case.case_number:
        if db.query(Case.id).filter(Case.case_number == new_number).first():
            raise ValidationError(f"Case number {new_number} already exists")

    for field, value in changes.items():
        setattr(case, field, value)

    if "status" in changes:
        if case.status in CLOSED_STATUSES:
            if case.date_closed is None:
                case.date_closed = datetime.now(timezone.utc)
        elif "date_closed" not in changes:
            case.date_closed = None

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(_integrity_message(exc))
    db.refresh(case)
    return case


def delete_case(db: Session, case_id: int, acting_user: User) -> None:
    case = _get_or_404(db, case_id)
    authorize(acting_user, Action.DELETE_CASE, owner_id=case.created_by_user_id)

    # Evidence and its custody ledger must never disappear with the case
    if case.evidence:
        raise ValidationError(
            f"Case {case.case_number} still has {len(case.evidence)} evidence item(s); delete them first"
        )

    db.delete(case)
    db.commit()
    logger.info("Case %s deleted by user %s", case_id, acting_user.id)


def project(case_data: Dict[str, Any], fields: Optional[List[str]]) -> Dict[str, Any]:
    if fields is None:
        return case_data
    return {f: case_data.get(f) for f in fields}
