from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from ..core.custody import create_custody_entry, verify_chain
from ..models.custody import CustodyEntry
from ..models.evidence import Evidence
from ..models.user import User


def append_custody_entry(
    db: Session,
    evidence: Evidence,
    handler: User,
    action: str,
    notes: Optional[str] = None,
) -> CustodyEntry:
    """
    The only write primitive for the ledger. Adds the entry to the session
    without committing so the caller commits it with the change it records.
    """
    last = evidence.chain[-1] if evidence.chain else None

    entry_data = create_custody_entry(
        evidence_id=evidence.id,
        sequence=last.sequence + 1 if last else 1,
        handled_by_user_id=handler.id,
        action=action,
        notes=notes,
        prev_hash=last.entry_hash_hex if last else None,
    )
    entry = CustodyEntry(
        evidence_id=evidence.id,
        sequence=entry_data["sequence"],
        handled_by_user_id=handler.id,
        action=action,
        notes=notes,
        ts_utc=entry_data["ts_utc"],
        prev_hash_hex=entry_data["prev_hash_hex"],
        entry_hash_hex=entry_data["entry_hash_hex"],
    )
    evidence.chain.append(entry)
    return entry


def verify_evidence_chain(evidence: Evidence) -> Dict[str, Any]:
    """Verify the integrity of the custody hash chain"""
    chain_valid, details = verify_chain(evidence.chain)
    return {
        "evidence_id": evidence.id,
        "chain_valid": chain_valid,
        "total_entries": len(details),
        "verification_details": details,
    }
