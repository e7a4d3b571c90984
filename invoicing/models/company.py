"""Company model - the tenant that owns items and invoices."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from invoicing.database import Base, IdType, utcnow


class Company(Base):
    """Company (tenant). Invoice numbers and item names are unique per company."""

    __tablename__ = 'company'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    currency_symbol = Column(String(8), nullable=False, default='₹')
    logo_path = Column(String(255), nullable=True)  # object key in the image store
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    users = relationship('AppUser', back_populates='company')

    def to_dict(self):
        return {
            'companyID': self.id,
            'companyName': self.name,
            'currencySymbol': self.currency_symbol,
        }

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}')>"
