"""base64url（パディングなし）のエンコード / デコード。"""

import base64


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """
    パディング有無のどちらでも受け付ける。標準 base64 の "+" "/" も許容する。

    :raises ValueError: base64 として解釈できない場合
    """
    text = value.strip().replace("+", "-").replace("/", "_")
    text += "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text.encode("ascii"))
