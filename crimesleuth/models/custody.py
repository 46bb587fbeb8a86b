from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint, event
from sqlalchemy.orm import relationship
from ..db import Base


class CustodyEntry(Base):
    __tablename__ = "custody_entries"
    __table_args__ = (
        UniqueConstraint("evidence_id", "sequence", name="uq_custody_entries_evidence_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    evidence_id = Column(Integer, ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    handled_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)
    ts_utc = Column(DateTime(timezone=True), nullable=False)
    prev_hash_hex = Column(String(64), nullable=False)
    entry_hash_hex = Column(String(64), nullable=False)

    # Relationships
    evidence = relationship("Evidence", back_populates="chain")
    handled_by = relationship("User", foreign_keys=[handled_by_user_id])


@event.listens_for(CustodyEntry, "before_update")
def _refuse_custody_rewrite(mapper, connection, target):
    raise ValueError(f"Custody entry {target.id} is append-only and cannot be modified")
