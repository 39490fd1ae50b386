"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "remote_patient_monitoring"
    # Multi-document transactions need a replica set
    MONGODB_TRANSACTIONS: bool = True

    # JWT (wallet sessions issued by this API)
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    WALLET_NONCE_EXPIRE_MINUTES: int = 10

    # Identity providers
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CERTS_URL: str = (
        "https://www.googleapis.com/robot/v1/metadata/x509/"
        "securetoken@system.gserviceaccount.com"
    )
    FIREBASE_CERTS_TTL_SECONDS: int = 3600
    CLERK_JWT_KEY: Optional[str] = None  # PEM public key
    CLERK_ISSUER: Optional[str] = None

    # Integrity anchoring
    BLOCKCHAIN_RPC_URL: str = "https://ethereum-sepolia.publicnode.com"
    BLOCKCHAIN_PRIVATE_KEY: Optional[str] = None
    BLOCKCHAIN_ANCHOR_ADDRESS: str = "0x0000000000000000000000000000000000000000"

    # File pinning
    PINATA_API_URL: str = "https://api.pinata.cloud"
    PINATA_JWT: Optional[str] = None
    PINATA_GATEWAY_URL: str = "https://gateway.pinata.cloud/ipfs"
    PINATA_TIMEOUT_SECONDS: int = 120

    # Application
    APP_NAME: str = "Remote Patient Monitoring API"
    API_V1_PREFIX: str = "/api/v1"
    PORT: int = 8000

    # CORS
    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000"]'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.BACKEND_CORS_ORIGINS)
        except json.JSONDecodeError:
            return ["http://localhost:3000"]


settings = Settings()
