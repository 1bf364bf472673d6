"""
Registry ledger backed by the deployed CertificateRegistry contract.

Writes are signed with a single configured key, so the only caller this
backend can act for is the signer address. Contract reverts are mapped
onto the same errors the in-memory ledger raises.
"""
import json
import logging
from importlib import resources
from typing import Optional

from web3 import Web3
from web3.exceptions import ContractCustomError, ContractLogicError, TimeExhausted

from .crypto_utils import hash_to_hex
from .errors import (
    AlreadyExists,
    AlreadyTrusted,
    CertRegistryError,
    InvalidHash,
    InvalidIdentity,
    InvalidRef,
    LedgerUnavailable,
    NotTrusted,
    Unauthorized,
)
from .ledger import CertificateRecord, WriteReceipt, is_zero_identity, validate_issue_args

logger = logging.getLogger(__name__)

# selector of OwnableUnauthorizedAccount(address)
OWNABLE_UNAUTHORIZED_SELECTOR = "0x118cdaa7"

REVERT_REASONS = [
    ("Not an authorized issuer", Unauthorized),
    ("OwnableUnauthorizedAccount", Unauthorized),
    ("Invalid document hash", InvalidHash),
    ("Invalid IPFS CID", InvalidRef),
    ("Certificate already exists", AlreadyExists),
    ("Issuer already authorized", AlreadyTrusted),
    ("Issuer not authorized", NotTrusted),
    ("Invalid issuer address", InvalidIdentity),
]


def load_abi() -> list:
    text = resources.files("certregistry").joinpath("abi/CertificateRegistry.json").read_text("utf-8")
    return json.loads(text)


def map_revert(error: ContractLogicError) -> CertRegistryError:
    message = str(error)
    if isinstance(error, ContractCustomError) and OWNABLE_UNAUTHORIZED_SELECTOR in message:
        return Unauthorized(f"OwnableUnauthorizedAccount: {message}")
    for reason, exc_class in REVERT_REASONS:
        if reason in message:
            return exc_class(reason)
    return CertRegistryError(f"Contract call reverted: {message}")


class Web3Ledger:
    def __init__(self, w3, contract, account=None):
        self.w3 = w3
        self.contract = contract
        self.account = account

    @classmethod
    def connect(cls, rpc_url: str, contract_address: str, private_key: Optional[str] = None, abi=None):
        """Connect to a node and bind the deployed contract."""
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        if not w3.is_connected():
            raise LedgerUnavailable(f"Web3 not connected: {rpc_url}")
        logger.info(f"Connected to chain id {w3.eth.chain_id}")

        address = Web3.to_checksum_address(contract_address)
        if w3.eth.get_code(address) in (b"", b"\x00"):
            raise LedgerUnavailable(f"No contract deployed at {address}")
        contract = w3.eth.contract(address=address, abi=abi or load_abi())
        logger.info(f"Contract address: {address}")

        account = None
        if private_key:
            account = w3.eth.account.from_key(private_key)
            logger.info(f"Signer address: {account.address}")
        else:
            logger.warning("No private key provided, contract is read-only")
        return cls(w3, contract, account)

    @property
    def signer_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    @property
    def owner(self) -> str:
        return self._call(self.contract.functions.owner())

    # ---------------- READS ----------------
    def lookup(self, doc_hash: bytes) -> Optional[CertificateRecord]:
        exists, blob_ref, issuer, timestamp = self._call(
            self.contract.functions.verifyCertificate(bytes(doc_hash))
        )
        if not exists:
            return None
        return CertificateRecord(
            doc_hash=bytes(doc_hash),
            blob_ref=blob_ref,
            issuer=issuer,
            issued_at=int(timestamp),
        )

    def is_trusted(self, identity: str) -> bool:
        if is_zero_identity(identity) or not Web3.is_address(identity):
            return False
        return bool(self._call(
            self.contract.functions.isAuthorizedIssuer(Web3.to_checksum_address(identity))
        ))

    # ---------------- WRITES ----------------
    def issue(self, doc_hash: bytes, blob_ref: str, caller: str) -> WriteReceipt:
        self._require_signer(caller)
        validate_issue_args(doc_hash, blob_ref)
        logger.info(f"Issuing certificate {hash_to_hex(doc_hash)} cid={blob_ref}")
        return self._transact(self.contract.functions.issueCertificate(bytes(doc_hash), blob_ref))

    def authorize(self, identity: str, caller: str) -> WriteReceipt:
        self._require_signer(caller)
        if is_zero_identity(identity) or not Web3.is_address(identity):
            raise InvalidIdentity()
        return self._transact(
            self.contract.functions.addAuthorizedIssuer(Web3.to_checksum_address(identity))
        )

    def revoke(self, identity: str, caller: str) -> WriteReceipt:
        self._require_signer(caller)
        if not Web3.is_address(identity or ""):
            raise NotTrusted()
        return self._transact(
            self.contract.functions.removeAuthorizedIssuer(Web3.to_checksum_address(identity))
        )

    # ---------------- INTERNAL ----------------
    def _require_signer(self, caller: str) -> None:
        if self.account is None:
            raise Unauthorized("No signer available, contract is read-only")
        if not caller or caller.lower() != self.account.address.lower():
            raise Unauthorized(f"Cannot sign on behalf of {caller}")

    def _call(self, fn):
        try:
            return fn.call()
        except ContractLogicError as e:
            raise map_revert(e) from e
        except OSError as e:
            raise LedgerUnavailable(f"Ledger call failed: {e}") from e

    def _transact(self, fn) -> WriteReceipt:
        address = self.account.address
        try:
            txn = fn.build_transaction({
                "from": address,
                "nonce": self.w3.eth.get_transaction_count(address),
            })
            signed = self.account.sign_transaction(txn)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info(f"Transaction sent: {Web3.to_hex(tx_hash)}")
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        except ContractLogicError as e:
            raise map_revert(e) from e
        except (OSError, TimeExhausted) as e:
            raise LedgerUnavailable(f"Ledger write failed: {e}") from e

        if receipt["status"] != 1:
            raise CertRegistryError(f"Transaction {Web3.to_hex(tx_hash)} reverted")

        logger.info(f"Transaction confirmed in block {receipt['blockNumber']}")
        return WriteReceipt(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
        )
