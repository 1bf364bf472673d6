import pytest

from certregistry.app import create_app
from certregistry.audit import AuditLog
from certregistry.blob_store import LocalBlobStore
from certregistry.crypto_utils import derive_key
from certregistry.ledger import InMemoryLedger
from certregistry.service import CertificateService

# hardhat default accounts
OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
WRITER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OUTSIDER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

METADATA = {
    "studentName": "Ada Lovelace",
    "courseName": "Analytical Engines",
    "institution": "University of London",
    "issueDate": "1843-09-01",
    "grade": "A",
}


@pytest.fixture
def ledger():
    return InMemoryLedger(owner=OWNER)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def app(tmp_path, ledger, blob_store):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "AES_ENCRYPTION_KEY": "test-key",
            "LEDGER_BACKEND": "memory",
            "OWNER_ADDRESS": OWNER,
            "ISSUER_ADDRESS": None,
            "USE_IPFS": False,
        },
        ledger=ledger,
        blob_store=blob_store,
    )
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app, ledger, blob_store):
    return CertificateService(ledger, blob_store, derive_key("test-key"), audit_log=AuditLog())
