"""
Security utilities for card data at rest.

Two concerns are handled here:

1. FERNET ENCRYPTION (AES-128-CBC + HMAC-SHA256)
   - Card numbers and CVVs are encrypted before they are stored
   - Fernet provides authenticated encryption: data is both encrypted and
     integrity-checked, preventing tampering
   - The key is loaded from the environment, never hardcoded

2. CARD FINGERPRINTS (HMAC-SHA256)
   - Fernet ciphertext is randomised, so two encryptions of the same card
     number differ and cannot be matched in SQL
   - A keyed HMAC gives a stable lookup value that cannot be reversed or
     brute-forced without the key (plain SHA-256 over a 16-digit number can)

Enterprise note:
  In production, keys would come from an HSM or a secrets manager (AWS KMS,
  HashiCorp Vault), and card data would sit in a tokenization vault.
"""

import hashlib
import hmac

from cryptography.fernet import Fernet

from app.config import settings


_fernet = Fernet(settings.CARD_ENCRYPTION_KEY.encode())
_fingerprint_key = settings.CARD_ENCRYPTION_KEY.encode()


def encrypt_value(plaintext: str) -> bytes:
    """
    Encrypt a string value using Fernet.

    Args:
        plaintext: The sensitive value to encrypt (e.g., "4532015112830366").

    Returns:
        Encrypted bytes suitable for storing in a LargeBinary column.
    """
    return _fernet.encrypt(plaintext.encode())


def decrypt_value(ciphertext: bytes) -> str:
    """
    Decrypt a Fernet-encrypted value back to plaintext.

    Raises:
        cryptography.fernet.InvalidToken: If the data is corrupted or
            the encryption key doesn't match.
    """
    return _fernet.decrypt(ciphertext).decode()


def card_fingerprint(card_number: str) -> str:
    """Stable, keyed hex digest of a normalised card number."""
    return hmac.new(_fingerprint_key, card_number.encode(), hashlib.sha256).hexdigest()
