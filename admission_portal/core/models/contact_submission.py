import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from admission_portal.db.session import Base


class ContactSubmission(Base):
    """Message sent through the public contact form, with stored attachment paths."""

    __tablename__ = "contact_submissions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    recaptcha_verified = Column(Boolean, nullable=False, default=False)
    client_ip = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
