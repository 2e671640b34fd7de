from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from jewelry_retail.models import Invoice, ReturnExchange, ReturnExchangeType

REFERENCE_PREFIXES = {
    ReturnExchangeType.RETURN: 'RET',
    ReturnExchangeType.EXCHANGE: 'EXC',
}


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _next_in_sequence(db: Session, column: InstrumentedAttribute, prefix: str) -> str:
    last = db.execute(
        select(column)
        .where(column.like(f'{prefix}%'))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    ).scalar_one_or_none()
    next_number = 1
    if last:
        suffix = last[len(prefix) :]
        if suffix.isdigit():
            next_number = int(suffix) + 1
    return f'{prefix}{next_number:04d}'


def generate_reference(db: Session, record_type: ReturnExchangeType, *, today: date | None = None) -> str:
    day = today or _today()
    prefix = f'{REFERENCE_PREFIXES[ReturnExchangeType(record_type)]}-{day:%Y%m%d}-'
    return _next_in_sequence(db, ReturnExchange.reference_number, prefix)


def generate_invoice_number(db: Session, invoice_prefix: str, *, today: date | None = None) -> str:
    day = today or _today()
    prefix = f"{invoice_prefix.strip().upper() or 'INV'}-{day:%Y%m%d}-"
    return _next_in_sequence(db, Invoice.invoice_number, prefix)
