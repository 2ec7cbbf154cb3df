"""
AES-256-GCM decryption of WeChat Pay v3 notification resources.

The resource block carries ``ciphertext`` (base64 of ciphertext || tag),
``nonce`` (12 bytes) and ``associated_data``; the APIv3 key is the AEAD key.
"""
from __future__ import annotations

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from domain.common.exceptions import CryptoException


AEAD_ALGORITHM = "AEAD_AES_256_GCM"


def decrypt_resource(ciphertext_b64: str, associated_data: str, nonce: str, api_v3_key: bytes) -> str:
    if len(api_v3_key) != 32:
        raise CryptoException("api v3 key must be 32 bytes")
    try:
        data = base64.b64decode(ciphertext_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CryptoException("ciphertext is not valid base64") from exc
    try:
        plaintext = AESGCM(api_v3_key).decrypt(
            nonce.encode("utf-8"),
            data,
            associated_data.encode("utf-8") if associated_data else None,
        )
    except InvalidTag as exc:
        raise CryptoException("authentication tag mismatch") from exc
    except ValueError as exc:
        # wrong nonce length or truncated ciphertext
        raise CryptoException(str(exc)) from exc
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CryptoException("decrypted resource is not UTF-8") from exc


class NotificationCodec:
    """回调资源解密器，绑定商户 APIv3 密钥"""

    def __init__(self, api_v3_key: bytes) -> None:
        if len(api_v3_key) != 32:
            raise CryptoException("api v3 key must be 32 bytes")
        self._key = api_v3_key

    def decrypt(self, ciphertext_b64: str, associated_data: str, nonce: str) -> str:
        return decrypt_resource(ciphertext_b64, associated_data, nonce, self._key)
