"""
Local mirror of confirmed ledger writes.

The mirror is not authoritative. ``record`` never raises: a failed insert
is logged and rolled back, and the caller gets ``None``.
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from .database import Transaction, db

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def record(self, tx_hash, doc_hash, blob_ref, issuer, timestamp,
               block_number=None, gas_used=None, status="confirmed") -> Optional[int]:
        row = Transaction(
            tx_hash=tx_hash,
            doc_hash=doc_hash,
            blob_ref=blob_ref,
            issuer=issuer,
            timestamp=timestamp,
            status=status,
            block_number=block_number,
            gas_used=str(gas_used) if gas_used is not None else None,
        )
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Audit mirror write failed for {tx_hash}: {e}")
            return None
        return row.id

    def get_by_tx_hash(self, tx_hash: str) -> Optional[Transaction]:
        return self.session.query(Transaction).filter_by(tx_hash=tx_hash).first()

    def get_by_doc_hash(self, doc_hash: str) -> Optional[Transaction]:
        return self.session.query(Transaction).filter_by(doc_hash=doc_hash).first()

    def list(self, limit=50, offset=0) -> List[Transaction]:
        return (
            self.session.query(Transaction)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    def by_issuer(self, issuer: str) -> List[Transaction]:
        return (
            self.session.query(Transaction)
            .filter_by(issuer=issuer)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .all()
        )

    def update_status(self, tx_hash: str, status: str) -> bool:
        row = self.get_by_tx_hash(tx_hash)
        if not row:
            return False
        row.status = status
        self.session.commit()
        return True

    def stats(self) -> dict:
        total, issuers, certificates = self.session.query(
            func.count(Transaction.id),
            func.count(func.distinct(Transaction.issuer)),
            func.count(func.distinct(Transaction.doc_hash)),
        ).one()
        return {
            "totalTransactions": total,
            "totalIssuers": issuers,
            "totalCertificates": certificates,
        }
