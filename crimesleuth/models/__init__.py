"""ORM models package, re-exports all models so they register on Base.metadata."""

from .user import User, UserRole  # noqa: F401
from .case import Case, CaseStatus, CasePriority  # noqa: F401
from .evidence import Evidence, EvidenceType  # noqa: F401
from .custody import CustodyEntry  # noqa: F401
from .analysis import AnalysisResult  # noqa: F401
