"""
Student application and its documents. STATUS is mutable through the workflow only;
review fields are populated on approve/reject and cleared on resubmission.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from admission_portal.core.enums import ApplicationStatus, DocumentStatus, StorageType
from admission_portal.db.session import Base


class StudentApplication(Base):
    __tablename__ = "student_applications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(String(32), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default=ApplicationStatus.DRAFT.value, index=True)

    # Personal details
    full_name = Column(String(255), nullable=False, index=True)
    fathers_name = Column(String(255), nullable=True)
    mothers_name = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(30), nullable=True)
    aadhar_number = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True)
    registration_date = Column(Date, nullable=True)

    # Contact details
    email = Column(String(255), nullable=True)
    primary_phone = Column(String(20), nullable=True)
    secondary_phone = Column(String(20), nullable=True)
    street = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(10), nullable=True)
    country = Column(String(100), nullable=True, default="India")

    # Course details
    institution_name = Column(String(255), nullable=True)
    course = Column(String(255), nullable=True)
    stream = Column(String(255), nullable=True)
    campus = Column(String(255), nullable=True)
    custom_course = Column(String(255), nullable=True)

    # Guardian details
    guardian_name = Column(String(255), nullable=True)
    guardian_relationship = Column(String(50), nullable=True)
    guardian_phone = Column(String(20), nullable=True)
    guardian_email = Column(String(255), nullable=True)

    # Review info (rejection fields only while REJECTED)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_remarks = Column(Text, nullable=True)
    rejection_reason = Column(String(50), nullable=True)
    rejection_message = Column(Text, nullable=True)
    rejection_details = Column(JSON, nullable=True)

    # Provenance (display only)
    submitted_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    submitter_role = Column(String(20), nullable=False)
    referred_by = Column(String(255), nullable=True)

    resubmission_count = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    documents = relationship(
        "ApplicationDocument",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationDocument.uploaded_at",
        lazy="selectin",
    )


class ApplicationDocument(Base):
    __tablename__ = "application_documents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_pk = Column(
        UUID(as_uuid=True),
        ForeignKey("student_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type = Column(String(100), nullable=False)
    file_name = Column(String(255), nullable=False)
    # Relative storage path for local files, absolute URL for remote ones
    file_path = Column(String(1000), nullable=False)
    storage_type = Column(String(20), nullable=False, default=StorageType.LOCAL.value)
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=DocumentStatus.PENDING.value)
    remarks = Column(Text, nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    application = relationship("StudentApplication", back_populates="documents")
