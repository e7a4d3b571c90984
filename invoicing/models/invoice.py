"""Invoice model - aggregate root of an invoice and its lines."""
from sqlalchemy import Column, String, Numeric, Date, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from invoicing.database import Base, IdType
from invoicing.models.audit import AuditMixin


class Invoice(AuditMixin, Base):
    """
    Invoice.

    Totals are stored rounded to cents for listing and reporting, but are
    always recomputed from the lines on write; they are never accepted from
    the client.
    """

    __tablename__ = 'invoice'
    __table_args__ = (
        UniqueConstraint('company_id', 'invoice_no', name='uq_invoice_company_number'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    company_id = Column(IdType, ForeignKey('company.id'), nullable=False, index=True)
    invoice_no = Column(String(50), nullable=False)
    invoice_date = Column(Date, nullable=False)
    customer_name = Column(String(100), nullable=False)
    address = Column(String(200), nullable=True)
    city = Column(String(50), nullable=True)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    sub_total = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    invoice_amount = Column(Numeric(14, 2), nullable=False, default=0)

    # Relationships
    company = relationship('Company')
    lines = relationship(
        'InvoiceLine',
        back_populates='invoice',
        cascade='all, delete-orphan',
        order_by='InvoiceLine.row_no'
    )

    def to_list_dict(self):
        """Row shape for GET /Invoice/GetList."""
        data = {
            'primaryKeyID': self.id,
            'invoiceID': self.id,
            'invoiceNo': self.invoice_no,
            'invoiceDate': self.invoice_date.isoformat(),
            'customerName': self.customer_name,
            'subTotal': float(self.sub_total),
            'taxPercentage': float(self.tax_percentage),
            'taxAmount': float(self.tax_amount),
            'invoiceAmount': float(self.invoice_amount),
        }
        data.update(self.audit_dict())
        return data

    def to_dict(self):
        data = self.to_list_dict()
        data.update({
            'address': self.address,
            'city': self.city,
            'notes': self.notes,
            'lines': [line.to_dict() for line in self.lines],
        })
        return data

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_no}', total={self.invoice_amount})>"
