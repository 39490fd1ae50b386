# File pinning through the Pinata REST API

import json
from datetime import datetime
from typing import Optional

import requests
from pydantic import BaseModel

from app.config import settings
from app.core.logging import logger
from app.shared.exceptions import BadRequestException


class PinResult(BaseModel):
    """Content address and metadata returned for a pinned file."""

    ipfs_hash: str
    pin_size: Optional[int] = None
    timestamp: Optional[str] = None
    gateway_url: str


class PinningService:
    """Service for storing attachment bytes on IPFS via Pinata."""

    @staticmethod
    def _headers() -> dict:
        if not settings.PINATA_JWT:
            raise BadRequestException("PINATA_JWT is not configured. Please set it in your .env file.")
        return {"Authorization": f"Bearer {settings.PINATA_JWT}"}

    @staticmethod
    def _error_message(error: requests.RequestException) -> str:
        response = getattr(error, "response", None)
        if response is not None:
            try:
                return str(response.json().get("error", response.text))
            except ValueError:
                return response.text
        return str(error)

    @staticmethod
    def gateway_url(ipfs_hash: str) -> str:
        """Public gateway URL for a content address."""
        return f"{settings.PINATA_GATEWAY_URL.rstrip('/')}/{ipfs_hash}"

    @classmethod
    def pin_file(
        cls,
        content: bytes,
        filename: str,
        content_type: str,
        metadata: Optional[dict] = None,
    ) -> PinResult:
        """
        Upload and pin a file.

        Raises:
            BadRequestException: If the upload fails
        """
        pinata_metadata = {
            "name": filename,
            "keyvalues": {
                **(metadata or {}),
                "contentType": content_type,
                "uploadedAt": datetime.utcnow().isoformat(),
            },
        }

        try:
            response = requests.post(
                f"{settings.PINATA_API_URL}/pinning/pinFileToIPFS",
                files={"file": (filename, content, content_type)},
                data={
                    "pinataMetadata": json.dumps(pinata_metadata),
                    "pinataOptions": json.dumps({"cidVersion": 1, "wrapWithDirectory": False}),
                },
                headers=cls._headers(),
                timeout=settings.PINATA_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            message = cls._error_message(e)
            logger.error(f"Failed to pin file {filename}: {message}")
            raise BadRequestException(f"Failed to upload file: {message}")

        try:
            body = response.json()
            ipfs_hash = body["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unexpected Pinata response while pinning {filename}: {response.text[:200]}")
            raise BadRequestException(f"Failed to upload file: unexpected pinning response ({e})")

        logger.info(f"File {filename} pinned with hash: {ipfs_hash}")

        return PinResult(
            ipfs_hash=ipfs_hash,
            pin_size=body.get("PinSize"),
            timestamp=body.get("Timestamp"),
            gateway_url=cls.gateway_url(ipfs_hash),
        )

    @classmethod
    def unpin_file(cls, ipfs_hash: str) -> None:
        """
        Unpin a file by content address.

        Raises:
            BadRequestException: If the unpin request fails
        """
        try:
            response = requests.delete(
                f"{settings.PINATA_API_URL}/pinning/unpin/{ipfs_hash}",
                headers=cls._headers(),
                timeout=settings.PINATA_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            message = cls._error_message(e)
            logger.error(f"Failed to unpin {ipfs_hash}: {message}")
            raise BadRequestException(f"Failed to remove file: {message}")

        logger.info(f"File with hash {ipfs_hash} unpinned")

    @classmethod
    def file_exists(cls, ipfs_hash: str) -> bool:
        """Whether the content address is still pinned."""
        response = requests.get(
            f"{settings.PINATA_API_URL}/data/pinList",
            params={"hashContains": ipfs_hash, "status": "pinned"},
            headers=cls._headers(),
            timeout=settings.PINATA_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json().get("count", 0) > 0
