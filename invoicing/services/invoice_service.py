"""Invoice service with transactional logic - company-scoped."""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from invoicing.core.catalog import CatalogItem, CatalogLookup
from invoicing.core.computation import compute_totals
from invoicing.core.validation import validate_invoice
from invoicing.exceptions import ConflictError, NotFoundError, ValidationRejected
from invoicing.models import Invoice, InvoiceLine, Item

logger = logging.getLogger(__name__)

DUPLICATE_NUMBER_MESSAGE = 'Invoice number already exists'


def _company_catalog(company_id: int, session) -> CatalogLookup:
    rows = session.query(Item.id, Item.item_name).filter(Item.company_id == company_id).all()
    return CatalogLookup(CatalogItem(item_id=row.id, item_name=row.item_name) for row in rows)


def _validated(payload: dict, company_id: int, session) -> dict:
    """
    Run the shared invoice rules plus item membership for this company.

    Returns the coerced form data (Decimal amounts, int quantities, date).
    """
    report = validate_invoice(payload, catalog=_company_catalog(company_id, session))
    if not report.is_valid:
        raise ValidationRejected(next(iter(report.errors.values())), report.errors)
    return report.data


def _number_taken(company_id: int, invoice_no: str, session, exclude_id: Optional[int] = None) -> bool:
    query = session.query(Invoice.id).filter(
        Invoice.company_id == company_id,
        Invoice.invoice_no == invoice_no
    )
    if exclude_id:
        query = query.filter(Invoice.id != exclude_id)
    return query.first() is not None


def _apply(invoice: Invoice, data: dict) -> None:
    """
    Copy header fields, replace all lines renumbered 1..N and store totals.

    Totals sent by the client are ignored: they are recomputed here from
    the same computation the client used.
    """
    invoice.invoice_no = data['invoiceNo']
    invoice.invoice_date = data['invoiceDate']
    invoice.customer_name = data['customerName']
    invoice.address = data.get('address') or None
    invoice.city = data.get('city') or None
    invoice.tax_percentage = data.get('taxPercentage') or Decimal('0')
    invoice.notes = data.get('notes') or None

    invoice.lines = [
        InvoiceLine(
            row_no=row_no,
            item_id=line['itemID'],
            description=line.get('description') or None,
            quantity=line['quantity'],
            rate=line['rate'],
            discount_pct=line.get('discountPct') or Decimal('0'),
        )
        for row_no, line in enumerate(data['lines'], start=1)
    ]

    totals = compute_totals(invoice.lines, invoice.tax_percentage).rounded()
    invoice.sub_total = totals.sub_total
    invoice.tax_amount = totals.tax_amount
    invoice.invoice_amount = totals.invoice_amount


def get_invoice(invoice_id: int, company_id: int, session, for_update: bool = False) -> Invoice:
    query = session.query(Invoice).filter(Invoice.id == invoice_id, Invoice.company_id == company_id)
    if for_update:
        query = query.with_for_update()
    invoice = query.first()
    if invoice is None:
        raise NotFoundError(f'Invoice {invoice_id} not found')
    return invoice


def create_invoice(payload: dict, company_id: int, user_name: str, session) -> Invoice:
    """
    Create an invoice with its lines.

    Raises:
        ValidationRejected: rule violation, unknown item or duplicate number
    """
    data = _validated(payload, company_id, session)
    if _number_taken(company_id, data['invoiceNo'], session):
        raise ValidationRejected(DUPLICATE_NUMBER_MESSAGE, {'invoiceNo': DUPLICATE_NUMBER_MESSAGE})

    invoice = Invoice(company_id=company_id)
    _apply(invoice, data)
    invoice.touch(user_name)

    try:
        session.add(invoice)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationRejected(DUPLICATE_NUMBER_MESSAGE, {'invoiceNo': DUPLICATE_NUMBER_MESSAGE})

    logger.info(
        f"[INVOICE] Created invoice {invoice.id} #{invoice.invoice_no} "
        f"({len(invoice.lines)} lines, total {invoice.invoice_amount}) for company {company_id}"
    )
    return invoice


def update_invoice(invoice_id: int, payload: dict, company_id: int, user_name: str, session) -> Invoice:
    """
    Replace an invoice if the caller's ``updatedOn`` still matches.

    The comparison is a plain equality test on the token under a row lock;
    a missing token never matches.

    Raises:
        NotFoundError: invoice is gone
        ConflictError: token missing or stale
        ValidationRejected: rule violation, unknown item or duplicate number
    """
    try:
        invoice = get_invoice(invoice_id, company_id, session, for_update=True)

        token = payload.get('updatedOn')
        if token != invoice.updated_on_token:
            logger.warning(
                f"[INVOICE] Conflict on invoice {invoice_id}: sent {token}, current {invoice.updated_on_token}"
            )
            raise ConflictError(current_updated_on=invoice.updated_on_token)

        data = _validated(payload, company_id, session)
        if _number_taken(company_id, data['invoiceNo'], session, exclude_id=invoice.id):
            raise ValidationRejected(DUPLICATE_NUMBER_MESSAGE, {'invoiceNo': DUPLICATE_NUMBER_MESSAGE})

        _apply(invoice, data)
        invoice.touch(user_name)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationRejected(DUPLICATE_NUMBER_MESSAGE, {'invoiceNo': DUPLICATE_NUMBER_MESSAGE})
    except Exception:
        session.rollback()
        raise

    logger.info(f"[INVOICE] Updated invoice {invoice.id} for company {company_id}")
    return invoice


def delete_invoice(invoice_id: int, company_id: int, session) -> None:
    invoice = get_invoice(invoice_id, company_id, session)
    session.delete(invoice)
    session.commit()
    logger.info(f"[INVOICE] Deleted invoice {invoice_id} for company {company_id}")


def _date_filtered(query, from_date: Optional[date], to_date: Optional[date]):
    if from_date:
        query = query.filter(Invoice.invoice_date >= from_date)
    if to_date:
        query = query.filter(Invoice.invoice_date <= to_date)
    return query


def list_invoices(company_id: int, session, invoice_id: Optional[int] = None,
                  from_date: Optional[date] = None, to_date: Optional[date] = None) -> list:
    """Invoices newest first, optionally narrowed to one id and/or a date range."""
    query = session.query(Invoice).filter(Invoice.company_id == company_id)
    if invoice_id:
        query = query.filter(Invoice.id == invoice_id)
    query = _date_filtered(query, from_date, to_date)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()


def get_summary(company_id: int, session, from_date: Optional[date] = None,
                to_date: Optional[date] = None) -> dict:
    """Invoice count and amount sum over an optional date range."""
    query = session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.invoice_amount), 0)
    ).filter(Invoice.company_id == company_id)
    count, total = _date_filtered(query, from_date, to_date).one()

    return {
        'invoiceCount': int(count or 0),
        'totalAmount': float(total or 0),
    }


def _month_start(value: date, months_back: int = 0) -> date:
    index = value.year * 12 + (value.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def get_trend_12m(company_id: int, session, as_of: Optional[date] = None) -> list:
    """
    Twelve monthly buckets ending with the month of ``as_of`` (oldest first).

    Buckets without invoices are present with zero values.
    """
    as_of = as_of or date.today()
    first_month = _month_start(as_of, 11)
    next_month = _month_start(as_of, -1)

    rows = session.query(Invoice.invoice_date, Invoice.invoice_amount).filter(
        Invoice.company_id == company_id,
        Invoice.invoice_date >= first_month,
        Invoice.invoice_date < next_month
    ).all()

    buckets = {_month_start(as_of, back): [0, Decimal('0')] for back in range(11, -1, -1)}
    for invoice_date, amount in rows:
        bucket = buckets[_month_start(invoice_date)]
        bucket[0] += 1
        bucket[1] += amount or Decimal('0')

    return [
        {
            'monthStart': month.isoformat(),
            'invoiceCount': count,
            'amountSum': float(amount),
        }
        for month, (count, amount) in buckets.items()
    ]
