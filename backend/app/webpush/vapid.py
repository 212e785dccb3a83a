# backend/app/webpush/vapid.py

"""
VAPID (RFC 8292) 認証トークンの発行。

- サーバー鍵ペア（P-256）の読み込み・生成
- Push エンドポイントごとの ES256 署名付き JWT の生成
- Authorization ヘッダ値 "vapid t=<jwt>, k=<公開鍵>" の組み立て
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt
from jose.exceptions import JOSEError

from .encoding import b64url_decode, b64url_encode
from .errors import CryptoError, ValidationError

ALGORITHM = "ES256"
# Push サービスは 24 時間を超えるトークンを拒否するため、半分の 12 時間で発行する。
TOKEN_LIFETIME_SECONDS = 43200


@dataclass(frozen=True)
class VapidKeyPair:
    """
    VAPID 用サーバー鍵ペア。

    public_key は 65 バイトの非圧縮点、private_key は 32 バイトのスカラー。
    プロセス生存期間中の設定値として扱い、変更しない。
    """

    public_key: bytes
    private_key: bytes

    @classmethod
    def from_base64url(cls, public_key: str, private_key: str) -> "VapidKeyPair":
        """
        base64url 文字列から鍵ペアを生成し、公開鍵と秘密鍵が対応していることを検証する。

        :raises ValueError: 鍵の形式が不正、または公開鍵と秘密鍵が一致しない場合。
        """
        public_bytes = b64url_decode(public_key)
        private_bytes = b64url_decode(private_key)

        if len(public_bytes) != 65 or public_bytes[0] != 0x04:
            raise ValueError("VAPID public key must be a 65-byte uncompressed P-256 point.")
        if len(private_bytes) != 32:
            raise ValueError("VAPID private key must be a 32-byte P-256 scalar.")

        pair = cls(public_key=public_bytes, private_key=private_bytes)
        if pair.derived_public_key() != public_bytes:
            raise ValueError("VAPID public key does not match the private key.")
        return pair

    @property
    def public_key_b64(self) -> str:
        return b64url_encode(self.public_key)

    @property
    def private_key_b64(self) -> str:
        return b64url_encode(self.private_key)

    def signing_key(self) -> ec.EllipticCurvePrivateKey:
        return ec.derive_private_key(
            int.from_bytes(self.private_key, "big"),
            ec.SECP256R1(),
        )

    def signing_key_pem(self) -> str:
        """JWT ライブラリに渡す PKCS#8 PEM 形式の秘密鍵。"""
        return self.signing_key().private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def derived_public_key(self) -> bytes:
        return self.signing_key().public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )


def generate_vapid_key_pair() -> VapidKeyPair:
    """
    新しい VAPID 鍵ペアを生成する（初回セットアップ用）。

    公開鍵はクライアントの購読処理に渡し、秘密鍵は環境変数などで安全に保管すること。
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_value = private_key.private_numbers().private_value
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return VapidKeyPair(
        public_key=public_bytes,
        private_key=private_value.to_bytes(32, byteorder="big"),
    )


def endpoint_audience(endpoint: str) -> str:
    """
    Push エンドポイント URL から audience（scheme://host[:port]）を求める。

    userinfo やパスは audience に含めない。

    :raises ValidationError: https でない、またはホストを含まない URL の場合。
    """
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as exc:
        raise ValidationError(f"Malformed push endpoint: {endpoint!r}") from exc

    if parts.scheme != "https" or not parts.hostname:
        raise ValidationError(f"Push endpoint must be an https URL: {endpoint!r}")

    host = parts.hostname
    if ":" in host:
        # IPv6 リテラル
        host = f"[{host}]"
    if port is not None:
        host = f"{host}:{port}"
    return f"{parts.scheme}://{host}"


def _subject_claim(subject: str) -> str:
    if subject.startswith(("mailto:", "https:")):
        return subject
    return f"mailto:{subject}"


def issue_vapid_authorization(
    endpoint: str,
    key_pair: VapidKeyPair,
    subject: str,
    *,
    now: Optional[int] = None,
) -> str:
    """
    エンドポイント 1件分の Authorization ヘッダ値を発行する。

    :param endpoint: 購読の Push エンドポイント URL
    :param key_pair: サーバーの VAPID 鍵ペア
    :param subject: 連絡先（メールアドレスまたは mailto:/https: URL）
    :param now: 発行時刻（UNIX 秒）。テスト用。
    :raises ValidationError: エンドポイント URL が不正な場合。
    :raises CryptoError: 鍵の読み込みや署名に失敗した場合。
    :return: "vapid t=<jwt>, k=<base64url 公開鍵>"
    """
    audience = endpoint_audience(endpoint)
    issued_at = int(time.time()) if now is None else int(now)

    claims = {
        "aud": audience,
        "exp": issued_at + TOKEN_LIFETIME_SECONDS,
        "iat": issued_at,
        "sub": _subject_claim(subject),
    }

    try:
        token = jwt.encode(
            claims,
            key_pair.signing_key_pem(),
            algorithm=ALGORITHM,
            headers={"typ": "JWT"},
        )
    except (JOSEError, ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"Failed to sign VAPID token: {exc}") from exc

    return f"vapid t={token}, k={key_pair.public_key_b64}"
