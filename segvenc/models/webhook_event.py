"""Payment gateway webhook log - every inbound body, verbatim."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK, JSONType


class WebhookEvent(Base):
    """Raw webhook payload plus its classification and processing outcome."""
    __tablename__ = 'gateway_webhook_logs'

    RECEIVED = 'RECEIVED'
    PROCESSED = 'PROCESSED'
    IGNORED = 'IGNORED'
    REJECTED = 'REJECTED'
    FAILED = 'FAILED'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    gateway = Column(String(40), nullable=False, index=True)
    event_type = Column(String(40), nullable=False, default='unknown', index=True)
    raw_body = Column(Text, nullable=False)
    payload_json = Column(JSONType, nullable=True)
    dedupe_key = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RECEIVED, index=True)
    error = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<WebhookEvent(gateway='{self.gateway}', event_type='{self.event_type}', status='{self.status}')>"

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'gateway': self.gateway,
            'event_type': self.event_type,
            'payload': self.payload_json,
            'dedupe_key': self.dedupe_key,
            'received_at': self.received_at.isoformat() if self.received_at else None,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
            'status': self.status,
            'error': self.error,
        }

    @property
    def is_processed(self):
        """Check if event has been processed."""
        return self.status == self.PROCESSED
