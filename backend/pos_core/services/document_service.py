# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence
from .concurrency import ConcurrentUpdateError


def next_document_number(
    *,
    outlet_id: int,
    document_type: str,
    prefix: str,
    year: int,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for an outlet/type/year.

    Must run inside the caller's write transaction: the counter increment
    commits or rolls back together with the document that uses it, so a
    failed sale never burns a number. Sequences restart every year.

    Format: PREFIX-YEAR-NNNNNN (e.g. CMD-2026-000042)
    """
    if not outlet_id:
        raise ValidationError("outlet_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    sequence_key = f"{document_type}-{year}"

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.outlet_id == outlet_id,
            DocumentSequence.document_type == sequence_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(outlet_id=outlet_id, document_type=sequence_key)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(outlet_id=outlet_id, document_type=sequence_key, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrentUpdateError("document sequence created concurrently") from exc
        next_num = 1

    return f"{prefix}-{year}-{next_num:0{pad}d}"
