import os

from dotenv import load_dotenv

# ---------------- LOAD SECRETS ----------------
load_dotenv()


def env_flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    AES_ENCRYPTION_KEY = os.getenv("AES_ENCRYPTION_KEY")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///certregistry.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "memory" runs the registry in-process, "web3" uses the deployed contract
    LEDGER_BACKEND = os.getenv("LEDGER_BACKEND", "memory")
    OWNER_ADDRESS = os.getenv("OWNER_ADDRESS", "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")
    # identity the API issues as; defaults to the owner or the web3 signer
    ISSUER_ADDRESS = os.getenv("ISSUER_ADDRESS")
    RPC_URL = os.getenv("RPC_URL", "http://127.0.0.1:8545")
    PRIVATE_KEY = os.getenv("PRIVATE_KEY")
    CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS")

    USE_IPFS = env_flag("USE_IPFS")
    IPFS_API_URL = os.getenv("IPFS_API_URL", "http://localhost:5001")
    IPFS_TIMEOUT = float(os.getenv("IPFS_TIMEOUT", "10"))
    IPFS_STORAGE_PATH = os.getenv("IPFS_STORAGE_PATH", "ipfs-storage")

    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
