"""
Custodial wallet material: key generation, key encryption and PIN hashing.

Private keys are secp256k1 scalars. The settlement address is the last 20
bytes of the Keccak-256 hash of the uncompressed public key. Keys are
stored as a JSON envelope encrypted with AES-256-GCM under a key derived
from the service secret with argon2id.
"""
import base64
import json
import secrets
from typing import Any, Dict, Optional

import structlog
from argon2 import PasswordHasher
from argon2.low_level import Type, hash_secret_raw
from Crypto.Hash import keccak
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from textchain.core.config import DEFAULT_WALLET_SECRET
from textchain.models.domain import NewWallet

logger = structlog.get_logger(__name__)

ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536
ARGON2_PARALLELISM = 1
ARGON2_HASH_LEN = 32


class WalletError(Exception):
    """Raised when wallet material cannot be produced or opened."""


def derive_address(private_key_bytes: bytes) -> str:
    """Settlement address for a raw 32-byte private key."""
    private_value = int.from_bytes(private_key_bytes, byteorder="big")
    # cryptography validates the scalar range for secp256k1
    private_key = ec.derive_private_key(private_value, ec.SECP256K1())
    public_key_bytes = private_key.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    digest = keccak.new(digest_bits=256)
    digest.update(public_key_bytes[1:])
    return "0x" + digest.digest()[-20:].hex()


class WalletFactory:
    """Creates wallets and opens their stored keys."""

    def __init__(
        self,
        encryption_secret: str,
        time_cost: int = ARGON2_TIME_COST,
        memory_cost: int = ARGON2_MEMORY_COST,
        parallelism: int = ARGON2_PARALLELISM,
    ):
        if encryption_secret == DEFAULT_WALLET_SECRET:
            logger.warning("Wallet keys are encrypted with the development secret")
        self._secret = encryption_secret.encode("utf-8")
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self._pin_hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def create_wallet(self) -> NewWallet:
        """Generate a fresh key pair and return its address and encrypted key."""
        private_key = ec.generate_private_key(ec.SECP256K1())
        private_key_bytes = private_key.private_numbers().private_value.to_bytes(32, byteorder="big")
        address = derive_address(private_key_bytes)
        logger.info("Wallet generated", wallet_address=address)
        return NewWallet(address=address, encrypted_private_key=self.encrypt_private_key(private_key_bytes))

    def _derive_aes_key(self, salt: bytes, params: Optional[Dict[str, Any]] = None) -> bytes:
        params = params or {}
        return hash_secret_raw(
            secret=self._secret,
            salt=salt,
            time_cost=params.get("timeCost", self.time_cost),
            memory_cost=params.get("memoryCost", self.memory_cost),
            parallelism=params.get("parallelism", self.parallelism),
            hash_len=ARGON2_HASH_LEN,
            type=Type.ID,
        )

    def encrypt_private_key(self, private_key_bytes: bytes) -> str:
        salt = secrets.token_bytes(16)
        nonce = secrets.token_bytes(12)
        cipher = AESGCM(self._derive_aes_key(salt))
        ciphertext = cipher.encrypt(nonce, private_key_bytes, None)
        envelope: Dict[str, Any] = {
            "version": 1,
            "enc": "aes-256-gcm",
            "kdf": "argon2id",
            "kdfParams": {
                "timeCost": self.time_cost,
                "memoryCost": self.memory_cost,
                "parallelism": self.parallelism,
                "hashLen": ARGON2_HASH_LEN,
            },
            "saltB64": base64.b64encode(salt).decode("ascii"),
            "nonceB64": base64.b64encode(nonce).decode("ascii"),
            "ciphertextB64": base64.b64encode(ciphertext).decode("ascii"),
        }
        return json.dumps(envelope)

    def decrypt_private_key(self, encrypted_private_key: str) -> str:
        """
        Open a stored key envelope.

        Returns:
            The private key as ``0x``-prefixed hex

        Raises:
            WalletError: If the envelope is malformed or was not sealed with this secret
        """
        try:
            envelope = json.loads(encrypted_private_key)
            salt = base64.b64decode(envelope["saltB64"])
            nonce = base64.b64decode(envelope["nonceB64"])
            ciphertext = base64.b64decode(envelope["ciphertextB64"])
            kdf_params = envelope.get("kdfParams") or {}
        except (ValueError, KeyError, TypeError) as exc:
            raise WalletError("Wallet key envelope is malformed.") from exc

        if len(salt) != 16 or len(nonce) != 12 or len(ciphertext) < 16:
            raise WalletError("Wallet key envelope has invalid lengths.")

        try:
            private_key_bytes = AESGCM(self._derive_aes_key(salt, kdf_params)).decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise WalletError("Wallet key could not be decrypted.") from exc
        return "0x" + private_key_bytes.hex()

    def hash_pin(self, pin: str) -> str:
        return self._pin_hasher.hash(pin)
