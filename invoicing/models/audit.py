"""Created/updated bookkeeping shared by items and invoices."""
from sqlalchemy import Column, String, DateTime
from invoicing.database import utcnow


class AuditMixin:
    """Who/when columns plus the ``updatedOn`` concurrency token."""

    created_by = Column(String(200), nullable=True)
    created_on = Column(DateTime, nullable=False, default=utcnow)
    updated_by = Column(String(200), nullable=True)
    updated_on = Column(DateTime, nullable=True)

    @property
    def updated_on_token(self):
        """Opaque token for optimistic concurrency (ISO-8601, microseconds)."""
        if self.updated_on is None:
            return None
        return self.updated_on.isoformat(timespec='microseconds')

    def touch(self, user_name):
        """Stamp a write; every insert and update gets a fresh token."""
        now = utcnow()
        if self.created_by is None:
            self.created_by = user_name
            self.created_on = now
        self.updated_by = user_name
        self.updated_on = now

    def audit_dict(self):
        return {
            'createdByUserName': self.created_by,
            'createdOn': self.created_on.isoformat() if self.created_on else None,
            'updatedByUserName': self.updated_by,
            'updatedOn': self.updated_on_token,
        }
