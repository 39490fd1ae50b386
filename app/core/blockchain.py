# Integrity anchoring on an Ethereum-compatible chain

import hashlib
import json
from typing import Any, Optional

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from app.config import settings
from app.core.logging import logger


class AnchorService:
    """
    Anchors payload digests on chain and verifies them later.

    A payload is anchored by sending a zero-value transaction whose data field
    is the SHA-256 digest of the payload's canonical JSON. Anchoring is
    best-effort: failures are logged and reported as ``None``.
    """

    _client: Optional[Web3] = None

    @staticmethod
    def canonical_json(payload: dict) -> str:
        """Serialize a payload deterministically (sorted keys, compact separators)."""
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)

    @classmethod
    def digest(cls, payload: dict) -> str:
        """Hex SHA-256 of the payload's canonical JSON."""
        return hashlib.sha256(cls.canonical_json(payload).encode("utf-8")).hexdigest()

    @classmethod
    def get_client(cls) -> Optional[Web3]:
        """Get or create the Web3 client, or None when no signing key is configured."""
        if not settings.BLOCKCHAIN_PRIVATE_KEY:
            logger.warning("⚠️ BLOCKCHAIN_PRIVATE_KEY not configured. Integrity anchoring is disabled.")
            return None

        if cls._client is None:
            cls._client = Web3(Web3.HTTPProvider(settings.BLOCKCHAIN_RPC_URL))
            logger.info(f"Blockchain client initialized for {settings.BLOCKCHAIN_RPC_URL}")
        return cls._client

    @classmethod
    def anchor(cls, payload: dict) -> Optional[str]:
        """
        Anchor a payload digest on chain.

        Args:
            payload: JSON-serializable data to anchor

        Returns:
            Transaction hash, or None when anchoring is disabled or failed
        """
        w3 = cls.get_client()
        if w3 is None:
            return None

        digest = cls.digest(payload)
        try:
            account = w3.eth.account.from_key(settings.BLOCKCHAIN_PRIVATE_KEY)
            txn: dict[str, Any] = {
                "from": account.address,
                "to": Web3.to_checksum_address(settings.BLOCKCHAIN_ANCHOR_ADDRESS),
                "value": 0,
                "data": "0x" + digest,
                "nonce": w3.eth.get_transaction_count(account.address),
                "chainId": w3.eth.chain_id,
                "gasPrice": w3.eth.gas_price,
            }
            txn["gas"] = w3.eth.estimate_gas(txn)

            signed = account.sign_transaction(txn)
            tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))
        except (Web3Exception, ValueError, requests.RequestException, OSError) as e:
            logger.error(f"❌ Failed to anchor payload digest {digest}: {e}")
            return None

        logger.info(f"✅ Anchored digest {digest} in transaction {tx_hash}")
        return tx_hash

    @classmethod
    def verify(cls, tx_hash: str, payload: dict) -> bool:
        """Check that the transaction's data equals the digest of ``payload``."""
        w3 = cls.get_client()
        if w3 is None or not tx_hash:
            return False

        try:
            transaction = w3.eth.get_transaction(tx_hash)
        except (Web3Exception, ValueError, requests.RequestException, OSError) as e:
            logger.error(f"Failed to fetch anchor transaction {tx_hash}: {e}")
            return False

        return bytes(transaction["input"]) == bytes.fromhex(cls.digest(payload))
