"""
Issuance and verification flow.

Issue:  hash -> encrypt metadata -> store blob -> ledger write -> mirror.
Verify: hash -> ledger lookup -> fetch blob -> decrypt.

The ledger decides validity. Blob retrieval and decryption only enrich a
verified record, so their failure is reported as a warning and never
turns a ledger match into an invalid result.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .crypto_utils import decrypt_metadata, encrypt_metadata, fingerprint, hash_to_hex, hex_to_hash
from .errors import CertificateNotFound, CertRegistryError, InvalidMetadata, ValidationError
from .ledger import CertificateRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("studentName", "courseName", "institution")
OPTIONAL_FIELDS = ("issueDate", "grade", "additionalInfo")

METADATA_UNAVAILABLE = "metadata_unavailable"


@dataclass
class IssueReceipt:
    doc_hash: str
    blob_ref: str
    tx_hash: str
    block_number: int
    gas_used: int
    issuer: str
    mirrored: bool = True

    def to_dict(self):
        return {
            "docHash": self.doc_hash,
            "ipfsCID": self.blob_ref,
            "transactionHash": self.tx_hash,
            "blockNumber": self.block_number,
            "gasUsed": str(self.gas_used),
            "issuer": self.issuer,
            "mirrored": self.mirrored,
        }


@dataclass
class VerificationResult:
    valid: bool
    doc_hash: str
    record: Optional[CertificateRecord] = None
    metadata: Optional[dict] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        data = {"valid": self.valid, "docHash": self.doc_hash}
        if self.record is not None:
            certificate = self.record.to_dict()
            certificate["metadata"] = self.metadata
            data["certificate"] = certificate
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


def clean_metadata(metadata: dict) -> dict:
    metadata = metadata or {}
    missing = [
        name for name in REQUIRED_FIELDS
        if not isinstance(metadata.get(name), str) or not metadata[name].strip()
    ]
    if missing:
        raise InvalidMetadata(f"Missing required metadata fields: {', '.join(missing)}")

    cleaned = {name: metadata[name] for name in REQUIRED_FIELDS}
    for name in OPTIONAL_FIELDS:
        if metadata.get(name) not in (None, ""):
            cleaned[name] = metadata[name]
    return cleaned


class CertificateService:
    def __init__(self, ledger, blob_store, key: bytes, audit_log=None):
        self.ledger = ledger
        self.blob_store = blob_store
        self.key = key
        self.audit_log = audit_log

    # ---------------- ISSUE ----------------
    def issue(self, file_bytes: bytes, metadata: dict, writer: str) -> IssueReceipt:
        metadata = clean_metadata(metadata)
        if not file_bytes:
            raise ValidationError("No certificate file provided")

        doc_hash = fingerprint(file_bytes)
        doc_hash_hex = hash_to_hex(doc_hash)
        logger.info(f"Document hash: {doc_hash_hex}")

        blob = json.dumps(encrypt_metadata(metadata, self.key)).encode("utf-8")
        blob_ref = self.blob_store.store(blob)
        logger.info(f"Encrypted metadata stored: {blob_ref}")

        tx = self.ledger.issue(doc_hash, blob_ref, writer)

        receipt = IssueReceipt(
            doc_hash=doc_hash_hex,
            blob_ref=blob_ref,
            tx_hash=tx.tx_hash,
            block_number=tx.block_number,
            gas_used=tx.gas_used,
            issuer=writer,
        )
        receipt.mirrored = self._mirror(receipt)
        return receipt

    def _mirror(self, receipt: IssueReceipt) -> bool:
        if self.audit_log is None:
            return False
        try:
            row_id = self.audit_log.record(
                tx_hash=receipt.tx_hash,
                doc_hash=receipt.doc_hash,
                blob_ref=receipt.blob_ref,
                issuer=receipt.issuer,
                timestamp=int(time.time()),
                block_number=receipt.block_number,
                gas_used=receipt.gas_used,
            )
        except Exception:
            logger.exception(f"Audit mirror failed for {receipt.tx_hash}")
            return False
        return row_id is not None

    # ---------------- VERIFY ----------------
    def verify(self, file_bytes: bytes) -> VerificationResult:
        doc_hash = fingerprint(file_bytes or b"")
        logger.info(f"Verifying hash: {hash_to_hex(doc_hash)}")
        return self._resolve(doc_hash)

    def get_certificate(self, doc_hash_hex: str) -> VerificationResult:
        result = self._resolve(hex_to_hash(doc_hash_hex))
        if not result.valid:
            raise CertificateNotFound(f"Certificate not found: {result.doc_hash}")
        return result

    def _resolve(self, doc_hash: bytes) -> VerificationResult:
        record = self.ledger.lookup(doc_hash)
        if record is None:
            return VerificationResult(valid=False, doc_hash=hash_to_hex(doc_hash))

        result = VerificationResult(valid=True, doc_hash=hash_to_hex(doc_hash), record=record)
        try:
            result.metadata = self.load_metadata(record.blob_ref)
        except (CertRegistryError, ValueError, KeyError) as e:
            logger.warning(f"Failed to retrieve metadata for {record.blob_ref}: {e}")
            result.warnings.append(METADATA_UNAVAILABLE)
        return result

    def load_metadata(self, blob_ref: str) -> dict:
        encrypted = json.loads(self.blob_store.fetch(blob_ref).decode("utf-8"))
        if not isinstance(encrypted, dict) or not all(
            isinstance(encrypted.get(name), str) for name in ("encrypted", "iv")
        ):
            raise ValueError(f"Malformed metadata blob: {blob_ref}")
        metadata = decrypt_metadata(encrypted["encrypted"], encrypted["iv"], self.key)
        if not isinstance(metadata, dict):
            raise ValueError(f"Malformed metadata in blob: {blob_ref}")
        return metadata
