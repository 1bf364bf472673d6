import logging
from datetime import datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from .audit import AuditLog
from .blob_store import build_blob_store
from .config import Config
from .crypto_utils import derive_key, hex_to_hash
from .database import db
from .documents import qr_png, receipt_pdf
from .errors import CertRegistryError, LedgerUnavailable, ValidationError
from .ledger import InMemoryLedger
from .service import CertificateService, OPTIONAL_FIELDS, REQUIRED_FIELDS

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default-key-change-this-in-production"

api = Blueprint("api", __name__, url_prefix="/api")


# ---------------- SERVICES ----------------
def build_ledger(config):
    backend = config["LEDGER_BACKEND"]
    if backend == "memory":
        return InMemoryLedger(owner=config["OWNER_ADDRESS"])
    if backend == "web3":
        from .web3_ledger import Web3Ledger

        if not config.get("CONTRACT_ADDRESS"):
            raise LedgerUnavailable("CONTRACT_ADDRESS is not configured")
        return Web3Ledger.connect(
            config["RPC_URL"], config["CONTRACT_ADDRESS"], private_key=config.get("PRIVATE_KEY")
        )
    raise ValueError(f"Unknown LEDGER_BACKEND: {backend}")


def issuer_identity(config, ledger):
    if config.get("ISSUER_ADDRESS"):
        return config["ISSUER_ADDRESS"]
    signer = getattr(ledger, "signer_address", None)
    return signer or config.get("OWNER_ADDRESS")


def get_service() -> CertificateService:
    return current_app.extensions["certregistry"]


# ---------------- ISSUE ----------------
@api.route("/issue", methods=["POST"])
def issue():
    upload = request.files.get("certificate")
    if not upload:
        raise ValidationError("No certificate file provided")

    metadata = {name: request.form.get(name) for name in REQUIRED_FIELDS + OPTIONAL_FIELDS}
    receipt = get_service().issue(upload.read(), metadata, current_app.config["ISSUER_ADDRESS"])
    return jsonify({
        "success": True,
        "message": "Certificate issued successfully",
        "data": receipt.to_dict(),
    })


# ---------------- VERIFY ----------------
@api.route("/verify", methods=["POST"])
def verify():
    upload = request.files.get("certificate")
    if not upload:
        raise ValidationError("No certificate file provided")

    result = get_service().verify(upload.read())
    body = result.to_dict()
    body["message"] = "Certificate is valid" if result.valid else "Certificate not found on ledger"
    return jsonify(body)


@api.route("/cert/<doc_hash>")
def certificate(doc_hash):
    result = get_service().get_certificate(doc_hash)
    body = result.to_dict()
    body["exists"] = True
    return jsonify(body)


# ---------------- AUDIT ----------------
@api.route("/transactions")
def transactions():
    limit = max(request.args.get("limit", 50, type=int), 1)
    offset = max(request.args.get("offset", 0, type=int), 0)
    rows = get_service().audit_log.list(limit=limit, offset=offset)
    return jsonify({
        "success": True,
        "count": len(rows),
        "transactions": [row.to_dict() for row in rows],
    })


@api.route("/stats")
def stats():
    service = get_service()
    signer = current_app.config["ISSUER_ADDRESS"]
    try:
        authorized = service.ledger.is_trusted(signer) if signer else False
    except LedgerUnavailable as e:
        logger.warning(f"Failed to check issuer authorization: {e}")
        authorized = False

    data = service.audit_log.stats()
    data.update({
        "signerAddress": signer,
        "isAuthorizedIssuer": authorized,
        "ledgerBackend": current_app.config["LEDGER_BACKEND"],
        "ipfsEnabled": current_app.config["USE_IPFS"],
    })
    return jsonify({"success": True, "stats": data})


@api.route("/issuers/<address>")
def issuer_status(address):
    return jsonify({"address": address, "authorized": get_service().ledger.is_trusted(address)})


# ---------------- QR / RECEIPT ----------------
@api.route("/qr/<doc_hash>")
def qr_code(doc_hash):
    hex_to_hash(doc_hash)
    url = request.host_url + f"api/cert/{doc_hash}"
    return send_file(qr_png(url), mimetype="image/png")


@api.route("/receipt/<doc_hash>")
def download_receipt(doc_hash):
    result = get_service().get_certificate(doc_hash)
    return send_file(
        receipt_pdf(result.record, result.metadata),
        as_attachment=True,
        download_name=f"{result.doc_hash}.pdf",
        mimetype="application/pdf",
    )


# ---------------- ERRORS ----------------
def handle_registry_error(error: CertRegistryError):
    if error.http_status >= 500:
        logger.error(f"{error.__class__.__name__}: {error}")
    return jsonify({"error": error.__class__.__name__, "details": error.message}), error.http_status


def handle_too_large(error):
    return jsonify({"error": "PayloadTooLarge", "details": "File exceeds upload limit"}), 413


# ---------------- APP FACTORY ----------------
def create_app(config=None, ledger=None, blob_store=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    CORS(app)

    db.init_app(app)
    with app.app_context():
        db.create_all()

    secret = app.config.get("AES_ENCRYPTION_KEY")
    if not secret:
        logger.warning("AES_ENCRYPTION_KEY not set, using the development default")
        secret = DEFAULT_KEY

    ledger = ledger or build_ledger(app.config)
    app.config["ISSUER_ADDRESS"] = issuer_identity(app.config, ledger)
    app.extensions["certregistry"] = CertificateService(
        ledger=ledger,
        blob_store=blob_store or build_blob_store(app.config),
        key=derive_key(secret),
        audit_log=AuditLog(),
    )

    app.register_blueprint(api)
    app.register_error_handler(CertRegistryError, handle_registry_error)
    app.register_error_handler(RequestEntityTooLarge, handle_too_large)

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "Certificate Registry Backend",
        })

    return app


if __name__ == "__main__":
    create_app().run(port=5000, debug=False)
