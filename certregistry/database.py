from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tx_hash = db.Column(db.String(80), unique=True, nullable=False)
    doc_hash = db.Column(db.String(80), nullable=False, index=True)
    blob_ref = db.Column(db.String(255), nullable=False)
    issuer = db.Column(db.String(64), nullable=False, index=True)
    timestamp = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), default="pending")
    block_number = db.Column(db.Integer)
    gas_used = db.Column(db.String(32))

    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "txHash": self.tx_hash,
            "docHash": self.doc_hash,
            "ipfsCID": self.blob_ref,
            "issuer": self.issuer,
            "timestamp": self.timestamp,
            "status": self.status,
            "blockNumber": self.block_number,
            "gasUsed": self.gas_used,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
