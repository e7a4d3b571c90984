"""InvoiceLine model for invoice line items."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from invoicing.core.computation import compute_line_amount, round2
from invoicing.database import Base, IdType


class InvoiceLine(Base):
    """
    Invoice Line.

    Description, rate and discount are copies taken from the item when it
    was picked (and possibly edited afterwards); they do not follow later
    catalog changes. The line amount is derived, never stored.
    """

    __tablename__ = 'invoice_line'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id', ondelete='CASCADE'), nullable=False, index=True)
    row_no = Column(Integer, nullable=False)
    item_id = Column(IdType, ForeignKey('item.id'), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    quantity = Column(BigInteger, nullable=False)
    rate = Column(Numeric(14, 2), nullable=False)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)

    # Relationships
    invoice = relationship('Invoice', back_populates='lines')
    item = relationship('Item')

    @property
    def line_amount(self):
        return compute_line_amount(self)

    def to_dict(self):
        return {
            'rowNo': self.row_no,
            'itemID': self.item_id,
            'description': self.description or '',
            'quantity': int(self.quantity),
            'rate': float(self.rate),
            'discountPct': float(self.discount_pct),
            'lineAmount': float(round2(self.line_amount)),
        }

    def __repr__(self):
        return f"<InvoiceLine(id={self.id}, invoice_id={self.invoice_id}, row={self.row_no}, qty={self.quantity})>"
