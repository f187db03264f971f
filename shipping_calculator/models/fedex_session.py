"""
Session-scoped FedEx credentials.

Every credential column holds a Fernet token; cleartext never touches the
database.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime

from shipping_calculator.core.database import Base
from shipping_calculator.core.utils import utcnow


class FedexSession(Base):
    """Encrypted FedEx account credentials saved by a frontend session."""
    __tablename__ = "fedex_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(128), unique=True, nullable=False, index=True)

    encrypted_account_number = Column(Text, nullable=False)
    encrypted_client_id = Column(Text, nullable=False)
    encrypted_client_secret = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
