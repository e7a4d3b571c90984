"""Item model - catalog entries referenced by invoice lines."""
from sqlalchemy import Column, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from invoicing.database import Base, IdType
from invoicing.models.audit import AuditMixin


class Item(AuditMixin, Base):
    """
    Catalog item.

    ``updated_on`` doubles as the optimistic-concurrency token: a PUT must
    carry the token it loaded, see ``updated_on_token``.
    """

    __tablename__ = 'item'
    __table_args__ = (
        UniqueConstraint('company_id', 'item_name', name='uq_item_company_name'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    company_id = Column(IdType, ForeignKey('company.id'), nullable=False, index=True)
    item_name = Column(String(50), nullable=False)
    description = Column(String(500), nullable=True)
    sales_rate = Column(Numeric(14, 2), nullable=False, default=0)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)
    picture_path = Column(String(255), nullable=True)  # object key in the image store

    # Relationships
    company = relationship('Company')

    def to_lookup_dict(self):
        """Shape used to populate invoice lines (id, name and defaults)."""
        return {
            'itemID': self.id,
            'itemName': self.item_name,
            'description': self.description,
            'salesRate': float(self.sales_rate),
            'discountPct': float(self.discount_pct),
        }

    def to_dict(self):
        data = self.to_lookup_dict()
        data['primaryKeyID'] = self.id
        data.update(self.audit_dict())
        return data

    def __repr__(self):
        return f"<Item(id={self.id}, name='{self.item_name}', rate={self.sales_rate})>"
