class CertRegistryError(Exception):
    http_status = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)

    @property
    def message(self) -> str:
        return str(self)


# ---------- TAXONOMY ----------
class AuthorizationError(CertRegistryError):
    """Caller lacks the required role"""
    http_status = 403


class ValidationError(CertRegistryError):
    """Malformed input"""
    http_status = 400


class ConflictError(CertRegistryError):
    """State conflict"""
    http_status = 409


class NotFoundError(CertRegistryError):
    """Not found"""
    http_status = 404


class BackendUnavailableError(CertRegistryError):
    """Backend unreachable"""
    http_status = 503


# ---------- LEDGER ----------
class Unauthorized(AuthorizationError):
    """Not an authorized issuer"""


class InvalidIdentity(ValidationError):
    """Invalid issuer address"""


class InvalidHash(ValidationError):
    """Invalid document hash"""


class InvalidRef(ValidationError):
    """Invalid blob reference"""


class InvalidMetadata(ValidationError):
    """Missing required metadata fields"""


class AlreadyExists(ConflictError):
    """Certificate already exists"""


class AlreadyTrusted(ConflictError):
    """Issuer already authorized"""


class NotTrusted(ConflictError):
    """Issuer not authorized"""


class CertificateNotFound(NotFoundError):
    """Certificate not found"""


class LedgerUnavailable(BackendUnavailableError):
    """Ledger backend unavailable"""


# ---------- BLOB STORE ----------
class BlobNotFound(NotFoundError):
    """Blob not found"""


class StoreUnavailable(BackendUnavailableError):
    """Blob store unavailable"""
