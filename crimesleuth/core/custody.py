import json
import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple


def compute_entry_hash(prev_hash: str, entry_data: Dict[str, Any]) -> str:
    """
    Compute hash for a chain-of-custody entry
    entry_hash = SHA256(prev_hash || canonical_json(entry_without_hashes))
    """
    canonical_json = json.dumps(entry_data, sort_keys=True, separators=(',', ':'))
    combined = prev_hash + canonical_json
    return hashlib.sha256(combined.encode('utf-8')).hexdigest()


def normalize_ts(ts: Optional[datetime]) -> Optional[datetime]:
    """UTC-aware, second precision, so hashes survive a DB roundtrip"""
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(microsecond=0)


def entry_payload(
    evidence_id: int,
    sequence: int,
    handled_by_user_id: int,
    action: str,
    notes: Optional[str],
    ts_utc: datetime,
) -> Dict[str, Any]:
    """The hashed portion of an entry"""
    return {
        "evidence_id": evidence_id,
        "sequence": sequence,
        "handled_by_user_id": handled_by_user_id,
        "action": action,
        "notes": notes,
        "ts_utc": normalize_ts(ts_utc).isoformat(),
    }


def create_custody_entry(
    evidence_id: int,
    sequence: int,
    handled_by_user_id: int,
    action: str,
    notes: Optional[str],
    prev_hash: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a chain-of-custody entry linked to its predecessor
    """
    # Use empty string as genesis hash if no previous entry
    if prev_hash is None:
        prev_hash = ""

    ts = normalize_ts(datetime.now(timezone.utc))
    entry_data = entry_payload(evidence_id, sequence, handled_by_user_id, action, notes, ts)

    return {
        **entry_data,
        "ts_utc": ts,
        "prev_hash_hex": prev_hash,
        "entry_hash_hex": compute_entry_hash(prev_hash, entry_data),
    }


def verify_chain(entries: Iterable[Any]) -> Tuple[bool, List[Dict[str, Any]]]:
    """
    Recompute the hash chain over stored entries (in sequence order).
    Each entry needs: id, evidence_id, sequence, handled_by_user_id, action,
    notes, ts_utc, prev_hash_hex, entry_hash_hex.
    """
    chain_valid = True
    details = []
    expected_prev_hash = ""
    expected_sequence = 1

    for entry in entries:
        entry_data = entry_payload(
            entry.evidence_id,
            entry.sequence,
            entry.handled_by_user_id,
            entry.action,
            entry.notes,
            entry.ts_utc,
        )
        sequence_valid = entry.sequence == expected_sequence
        prev_hash_valid = entry.prev_hash_hex == expected_prev_hash
        expected_entry_hash = compute_entry_hash(entry.prev_hash_hex, entry_data)
        entry_hash_valid = entry.entry_hash_hex == expected_entry_hash

        entry_valid = sequence_valid and prev_hash_valid and entry_hash_valid
        if not entry_valid:
            chain_valid = False

        details.append({
            "entry_id": entry.id,
            "sequence": entry.sequence,
            "action": entry.action,
            "ts_utc": entry_data["ts_utc"],
            "sequence_valid": sequence_valid,
            "prev_hash_valid": prev_hash_valid,
            "entry_hash_valid": entry_hash_valid,
            "entry_valid": entry_valid,
            "expected_entry_hash": expected_entry_hash,
            "actual_entry_hash": entry.entry_hash_hex,
        })

        expected_prev_hash = entry.entry_hash_hex
        expected_sequence += 1

    return chain_valid, details
