# backend/app/webpush/encryption.py

"""
Web Push ペイロード暗号化（RFC 8291 / RFC 8188 aes128gcm）。

メッセージごとに使い捨ての ECDH 鍵ペアを生成し、購読側の公開鍵・auth secret から
CEK と nonce を導出して AES-128-GCM で暗号化する。

エンベロープのレイアウト:
    salt(16) || record_size(4, big-endian) || key_length(1) || ephemeral_public_key(65) || ciphertext+tag
"""

from __future__ import annotations

import logging
import os
import struct

from cryptography.exceptions import InvalidKey, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .config import DEFAULT_RECORD_SIZE
from .errors import CryptoError, ValidationError

logger = logging.getLogger(__name__)

PUBLIC_KEY_LENGTH = 65
AUTH_SECRET_LENGTH = 16
SALT_LENGTH = 16
TAG_LENGTH = 16

WEBPUSH_INFO = b"WebPush: info\x00"
CEK_INFO = b"Content-Encoding: aes128gcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"

# 最終レコードのパディング区切り文字
RECORD_DELIMITER = b"\x02"


def _hkdf_sha256(key_material: bytes, *, salt: bytes, info: bytes, length: int) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    ).derive(key_material)


def _validate_subscriber_keys(public_key: bytes, auth_secret: bytes) -> None:
    if len(public_key) != PUBLIC_KEY_LENGTH or public_key[0] != 0x04:
        raise ValidationError(
            f"p256dh key must be a {PUBLIC_KEY_LENGTH}-byte uncompressed point "
            f"(got {len(public_key)} bytes)."
        )
    if len(auth_secret) != AUTH_SECRET_LENGTH:
        raise ValidationError(
            f"auth secret must be {AUTH_SECRET_LENGTH} bytes (got {len(auth_secret)} bytes)."
        )


def encrypt_payload(
    plaintext: str,
    subscriber_public_key: bytes,
    auth_secret: bytes,
    record_size: int = DEFAULT_RECORD_SIZE,
) -> bytes:
    """
    平文 JSON 文字列を aes128gcm エンベロープに暗号化する。

    メッセージ全体が 1 レコードに収まる前提で、分割（チャンク化）は行わない。

    :param plaintext: 送信するペイロード（UTF-8 でエンコードされる）
    :param subscriber_public_key: 購読の p256dh 鍵（65 バイト）
    :param auth_secret: 購読の auth secret（16 バイト）
    :param record_size: ヘッダに書き込むレコードサイズ
    :raises ValidationError: 鍵長やマーカーバイトが不正な場合。
    :raises CryptoError: 鍵のインポート・導出・暗号化に失敗した場合。
    """
    _validate_subscriber_keys(subscriber_public_key, auth_secret)

    try:
        # 1-2. メッセージごとの使い捨て ECDH 鍵ペア
        ephemeral_key = ec.generate_private_key(ec.SECP256R1())
        ephemeral_public = ephemeral_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )

        # 3. 購読側公開鍵との鍵共有
        subscriber_key = ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256R1(), subscriber_public_key
        )
        shared_secret = ephemeral_key.exchange(ec.ECDH(), subscriber_key)

        # 4. ランダムな salt
        salt = os.urandom(SALT_LENGTH)

        # 5-6. auth secret と共有秘密から IKM を導出
        key_info = WEBPUSH_INFO + subscriber_public_key + ephemeral_public
        ikm = _hkdf_sha256(auth_secret, salt=shared_secret, info=key_info, length=32)

        # 7-8. CEK と nonce
        cek = _hkdf_sha256(ikm, salt=salt, info=CEK_INFO, length=16)
        nonce = _hkdf_sha256(ikm, salt=salt, info=NONCE_INFO, length=12)

        # 9-10. 区切りバイトのみの最小パディングで暗号化（AAD なし）
        padded = plaintext.encode("utf-8") + RECORD_DELIMITER
        ciphertext = AESGCM(cek).encrypt(nonce, padded, None)
    except (ValueError, TypeError, InvalidKey, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"Failed to encrypt push payload: {exc}") from exc

    if len(ciphertext) > record_size:
        logger.warning(
            "Encrypted record (%d bytes) exceeds record size %d; sending as a single record.",
            len(ciphertext),
            record_size,
        )

    # 11. ヘッダ + 暗号文
    header = struct.pack(">16sIB", salt, record_size, len(ephemeral_public))
    return header + ephemeral_public + ciphertext
