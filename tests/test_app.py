from io import BytesIO

import pytest

from certregistry.app import create_app, issuer_identity
from certregistry.crypto_utils import fingerprint, hash_to_hex
from certregistry.ledger import InMemoryLedger

from .conftest import METADATA, OUTSIDER, OWNER

DOCUMENT = b"%PDF-1.4 diploma"


def upload(client, endpoint, content=DOCUMENT, **fields):
    data = dict(fields)
    data["certificate"] = (BytesIO(content), "certificate.pdf")
    return client.post(endpoint, data=data, content_type="multipart/form-data")


def test_health(client):
    body = client.get("/health").get_json()
    assert body["status"] == "healthy"


def test_issue_then_verify(client):
    response = upload(client, "/api/issue", **METADATA)
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["docHash"] == hash_to_hex(fingerprint(DOCUMENT))
    assert data["issuer"] == OWNER
    assert data["ipfsCID"].startswith("local-")

    body = upload(client, "/api/verify").get_json()
    assert body["valid"] is True
    assert body["certificate"]["issuer"] == OWNER
    assert body["certificate"]["metadata"] == METADATA


def test_verify_unknown(client):
    response = upload(client, "/api/verify", content=b"forged")
    assert response.status_code == 200
    assert response.get_json()["valid"] is False


def test_issue_requires_file(client):
    response = client.post("/api/issue", data=METADATA)
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_issue_requires_metadata(client):
    response = upload(client, "/api/issue", studentName="Ada")
    assert response.status_code == 400
    assert response.get_json()["error"] == "InvalidMetadata"


def test_duplicate_issue_is_conflict(client):
    upload(client, "/api/issue", **METADATA)
    response = upload(client, "/api/issue", **METADATA)
    assert response.status_code == 409
    assert response.get_json()["error"] == "AlreadyExists"


def test_revoked_issuer_gets_403(client, ledger):
    ledger.authorize(OUTSIDER, caller=OWNER)
    client.application.config["ISSUER_ADDRESS"] = OUTSIDER
    ledger.revoke(OUTSIDER, caller=OWNER)

    response = upload(client, "/api/issue", **METADATA)
    assert response.status_code == 403


def test_get_certificate(client):
    doc_hash = upload(client, "/api/issue", **METADATA).get_json()["data"]["docHash"]

    body = client.get(f"/api/cert/{doc_hash[2:]}").get_json()
    assert body["exists"] is True
    assert body["certificate"]["docHash"] == doc_hash
    assert body["certificate"]["metadata"]["institution"] == METADATA["institution"]

    assert client.get(f"/api/cert/{hash_to_hex(fingerprint(b'x'))}").status_code == 404
    assert client.get("/api/cert/0x12").status_code == 400


def test_transactions_and_stats(client):
    upload(client, "/api/issue", **METADATA)
    upload(client, "/api/issue", content=b"second", **METADATA)

    body = client.get("/api/transactions?limit=1").get_json()
    assert body["count"] == 1
    assert body["transactions"][0]["docHash"] == hash_to_hex(fingerprint(b"second"))

    stats = client.get("/api/stats").get_json()["stats"]
    assert stats["totalTransactions"] == 2
    assert stats["totalCertificates"] == 2
    assert stats["signerAddress"] == OWNER
    assert stats["isAuthorizedIssuer"] is True


def test_issuer_status(client):
    assert client.get(f"/api/issuers/{OWNER}").get_json()["authorized"] is True
    assert client.get(f"/api/issuers/{OUTSIDER}").get_json()["authorized"] is False


def test_qr_and_receipt(client):
    doc_hash = upload(client, "/api/issue", **METADATA).get_json()["data"]["docHash"]

    qr = client.get(f"/api/qr/{doc_hash}")
    assert qr.status_code == 200
    assert qr.mimetype == "image/png"
    assert qr.data.startswith(b"\x89PNG")

    pdf = client.get(f"/api/receipt/{doc_hash}")
    assert pdf.status_code == 200
    assert pdf.data.startswith(b"%PDF")

    assert client.get(f"/api/receipt/{hash_to_hex(fingerprint(b'x'))}").status_code == 404


def test_upload_limit(client):
    client.application.config["MAX_CONTENT_LENGTH"] = 64
    response = upload(client, "/api/verify", content=b"x" * 1024)
    assert response.status_code == 413


def test_issuer_identity_precedence():
    ledger = InMemoryLedger(owner=OWNER)
    assert issuer_identity({"OWNER_ADDRESS": OWNER}, ledger) == OWNER
    assert issuer_identity({"OWNER_ADDRESS": OWNER, "ISSUER_ADDRESS": OUTSIDER}, ledger) == OUTSIDER


def test_unknown_backend_rejected(tmp_path):
    with pytest.raises(ValueError):
        create_app({
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'x.db'}",
            "LEDGER_BACKEND": "paper",
        })


def test_transactions_limit_is_clamped(client):
    upload(client, "/api/issue", **METADATA)
    upload(client, "/api/issue", content=b"second", **METADATA)

    assert client.get("/api/transactions?limit=-1").get_json()["count"] == 1
    assert client.get("/api/transactions?limit=0&offset=-5").get_json()["count"] == 1
