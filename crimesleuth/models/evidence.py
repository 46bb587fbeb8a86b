from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from ..db import Base


class EvidenceType(str, PyEnum):
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    PHYSICAL = "physical"
    DIGITAL = "digital"
    OTHER = "other"


class Evidence(Base):
    __tablename__ = "evidence"

    id = Column(Integer, primary_key=True, index=True)
    evidence_id = Column(String(100), unique=True, index=True, nullable=False)
    case_id = Column(Integer, ForeignKey("cases.id"), nullable=False, index=True)
    type = Column(Enum(EvidenceType), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String(512), nullable=True)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    # Encrypted blob name in the file store and plaintext digest, if uploaded here
    file_path = Column(String(255), nullable=True)
    file_sha256 = Column(String(64), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    location = Column(String(200), nullable=True)
    collected_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    collection_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    case = relationship("Case", back_populates="evidence")
    collected_by = relationship("User", foreign_keys=[collected_by_user_id])
    chain = relationship(
        "CustodyEntry",
        back_populates="evidence",
        order_by="CustodyEntry.sequence",
        cascade="all, delete-orphan",
    )
    analysis_results = relationship(
        "AnalysisResult",
        back_populates="evidence",
        order_by="AnalysisResult.id",
        cascade="all, delete-orphan",
    )
