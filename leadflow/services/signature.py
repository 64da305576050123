"""
Slack request signature verification.

Signature is `v0=` + hex HMAC-SHA256 of `v0:{timestamp}:{raw body}`.
"""

import hashlib
import hmac


def compute_slack_signature(signing_secret: str, timestamp: str, body: bytes | str) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    base_string = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(
        signing_secret.encode("utf-8"),
        base_string,
        hashlib.sha256,
    ).hexdigest()
    return f"v0={digest}"


def verify_slack_signature(
    signing_secret: str, signature: str, timestamp: str, body: bytes | str
) -> bool:
    expected = compute_slack_signature(signing_secret, timestamp, body)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))
