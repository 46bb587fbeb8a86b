from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Float
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..db import Base


class AnalysisResult(Base):
    __tablename__ = "analysis_results"

    id = Column(Integer, primary_key=True, index=True)
    evidence_id = Column(Integer, ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(100), nullable=False, default="basic")
    result = Column(Text, nullable=False)
    analyst_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    confidence = Column(Float, nullable=False, default=0.8)
    notes = Column(Text, nullable=True)
    ts_utc = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    evidence = relationship("Evidence", back_populates="analysis_results")
    analyst = relationship("User", foreign_keys=[analyst_user_id])
