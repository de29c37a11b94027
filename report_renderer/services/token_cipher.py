"""Report token cipher.

A token is the URL-safe, unpadded base64 encoding of ``IV(16) || ciphertext``
where the ciphertext is the report URL encrypted with AES-128-CTR keyed by the
first 16 bytes of the shared secret.

CTR mode carries no integrity check: decrypting with the wrong secret yields
garbage text instead of an error.
"""

import base64
import binascii
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from report_renderer.errors import MissingSecretError, TokenError

IV_SIZE = 16
KEY_SIZE = 16


def _key_from_secret(secret: str | None) -> bytes:
    if not secret:
        raise MissingSecretError("app_secret not configured")
    key = secret.encode("utf-8")[:KEY_SIZE]
    if len(key) < KEY_SIZE:
        raise TokenError(f"app_secret must provide at least {KEY_SIZE} bytes")
    return key


def _ctr_cipher(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CTR(iv))


def encrypt_url(url: str, secret: str | None, *, iv: bytes | None = None) -> str:
    """Encrypt a report URL into a token.

    Args:
        url: Plain report URL.
        secret: Shared secret (first 16 bytes are used as the key).
        iv: Initialization vector; random when omitted.

    Returns:
        URL-safe base64 token without padding.
    """
    key = _key_from_secret(secret)
    if iv is None:
        iv = os.urandom(IV_SIZE)
    if len(iv) != IV_SIZE:
        raise TokenError(f"IV must be {IV_SIZE} bytes")

    encryptor = _ctr_cipher(key, iv).encryptor()
    encrypted = encryptor.update(url.encode("utf-8")) + encryptor.finalize()
    return base64.urlsafe_b64encode(iv + encrypted).decode("ascii").rstrip("=")


def decrypt_token(token: str, secret: str | None) -> str:
    """Recover the report URL from a token.

    Raises:
        MissingSecretError: If the secret is unset or empty.
        TokenError: If the token is not valid base64 or is shorter than an IV.
    """
    key = _key_from_secret(secret)

    standard = token.strip().replace("-", "+").replace("_", "/")
    standard += "=" * (-len(standard) % 4)
    try:
        raw = base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TokenError("Invalid or corrupted token") from e

    if len(raw) < IV_SIZE:
        raise TokenError("Invalid or corrupted token")

    iv, encrypted = raw[:IV_SIZE], raw[IV_SIZE:]
    decryptor = _ctr_cipher(key, iv).decryptor()
    plain = decryptor.update(encrypted) + decryptor.finalize()
    return plain.decode("utf-8", errors="replace")
