"""
Certificate registry ledger.

The ledger is the single source of truth for which document hashes have
been issued and which identities may issue them. Records are append-only:
a document hash moves from absent to issued exactly once. Writer
authorization is a trusted flag per identity, toggled by the owner.

``InMemoryLedger`` runs the registry in-process. ``Web3Ledger`` (see
``web3_ledger``) exposes the same interface over the deployed contract.
"""
import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .crypto_utils import HASH_SIZE, ZERO_HASH, hash_to_hex
from .errors import (
    AlreadyExists,
    AlreadyTrusted,
    InvalidHash,
    InvalidIdentity,
    InvalidRef,
    NotTrusted,
    Unauthorized,
)

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class CertificateRecord:
    doc_hash: bytes
    blob_ref: str
    issuer: str
    issued_at: int

    @property
    def exists(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "docHash": hash_to_hex(self.doc_hash),
            "ipfsCID": self.blob_ref,
            "issuer": self.issuer,
            "timestamp": self.issued_at,
            "issuedDate": datetime.fromtimestamp(self.issued_at, tz=timezone.utc).isoformat(),
        }


@dataclass(frozen=True)
class WriteReceipt:
    tx_hash: str
    block_number: int
    gas_used: int = 0


@dataclass(frozen=True)
class LedgerEvent:
    name: str
    args: dict
    timestamp: int = field(default_factory=lambda: int(time.time()))


def is_zero_identity(identity: Optional[str]) -> bool:
    if not identity:
        return True
    return identity.lower() == ZERO_ADDRESS


def _same(a: str, b: str) -> bool:
    # addresses compare case-insensitively (checksum casing)
    return a.lower() == b.lower()


def validate_issue_args(doc_hash: bytes, blob_ref: str) -> None:
    if not isinstance(doc_hash, (bytes, bytearray)) or len(doc_hash) != HASH_SIZE:
        raise InvalidHash()
    if bytes(doc_hash) == ZERO_HASH:
        raise InvalidHash()
    if not blob_ref:
        raise InvalidRef()


class InMemoryLedger:
    """
    In-process registry with the contract's semantics.

    The creator becomes both owner and first trusted writer. Every
    successful write bumps the block number and appends an event.
    """

    def __init__(self, owner: str, clock=time.time):
        if is_zero_identity(owner):
            raise InvalidIdentity("Ledger owner must be a non-zero identity")
        self._owner = owner
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[bytes, CertificateRecord] = {}
        self._trusted: Dict[str, bool] = {owner.lower(): True}
        self._block_number = 0
        self.events: List[LedgerEvent] = []

    @property
    def owner(self) -> str:
        return self._owner

    # ---------------- ACCESS CONTROL ----------------
    def _require_owner(self, caller: str) -> None:
        if not caller or not _same(caller, self._owner):
            raise Unauthorized(f"OwnableUnauthorizedAccount: {caller}")

    def authorize(self, identity: str, caller: str) -> WriteReceipt:
        with self._lock:
            self._require_owner(caller)
            if is_zero_identity(identity):
                raise InvalidIdentity()
            if self._trusted.get(identity.lower()):
                raise AlreadyTrusted()
            self._trusted[identity.lower()] = True
            receipt = self._seal("IssuerAdded", {"issuer": identity})
        logger.info(f"Issuer authorized: {identity}")
        return receipt

    def revoke(self, identity: str, caller: str) -> WriteReceipt:
        with self._lock:
            self._require_owner(caller)
            if not identity or not self._trusted.get(identity.lower()):
                raise NotTrusted()
            self._trusted[identity.lower()] = False
            receipt = self._seal("IssuerRemoved", {"issuer": identity})
        logger.info(f"Issuer revoked: {identity}")
        return receipt

    def is_trusted(self, identity: str) -> bool:
        if not identity:
            return False
        return self._trusted.get(identity.lower(), False)

    # ---------------- RECORDS ----------------
    def issue(self, doc_hash: bytes, blob_ref: str, caller: str) -> WriteReceipt:
        with self._lock:
            if not self.is_trusted(caller):
                raise Unauthorized()
            validate_issue_args(doc_hash, blob_ref)
            doc_hash = bytes(doc_hash)
            if doc_hash in self._records:
                raise AlreadyExists()

            record = CertificateRecord(
                doc_hash=doc_hash,
                blob_ref=blob_ref,
                issuer=caller,
                issued_at=int(self._clock()),
            )
            self._records[doc_hash] = record
            receipt = self._seal("CertificateIssued", {
                "docHash": hash_to_hex(doc_hash),
                "ipfsCID": blob_ref,
                "issuer": caller,
                "timestamp": record.issued_at,
            })
        logger.info(f"Certificate issued: {hash_to_hex(doc_hash)} block={receipt.block_number}")
        return receipt

    def lookup(self, doc_hash: bytes) -> Optional[CertificateRecord]:
        return self._records.get(bytes(doc_hash))

    def __len__(self):
        return len(self._records)

    # ---------------- INTERNAL ----------------
    def _seal(self, name: str, args: dict) -> WriteReceipt:
        self._block_number += 1
        event = LedgerEvent(name=name, args=args, timestamp=int(self._clock()))
        self.events.append(event)
        digest = hashlib.sha256(
            f"{self._block_number}|{name}|{sorted(args.items())}".encode("utf-8")
        ).hexdigest()
        return WriteReceipt(tx_hash="0x" + digest, block_number=self._block_number)
