"""
Payment gateway webhook authentication.

Mercado Pago signs notifications with an ``x-signature`` header of the form
``ts=<unix ts>,v1=<hex hmac>``. The HMAC-SHA256 is computed with the webhook
secret over the manifest ``id:<data.id>;request-id:<x-request-id>;ts:<ts>;``.
"""
import hashlib
import hmac
import secrets


def parse_signature_header(header: str | None) -> dict[str, str]:
    parts: dict[str, str] = {}
    if not header:
        return parts
    for chunk in header.split(","):
        key, _, value = chunk.strip().partition("=")
        if key and value:
            parts[key.strip()] = value.strip()
    return parts


def build_manifest(data_id: str, request_id: str | None, ts: str) -> str:
    manifest = f"id:{str(data_id).lower()};"
    if request_id:
        manifest += f"request-id:{request_id};"
    return manifest + f"ts:{ts};"


def compute_signature(secret: str, data_id: str, request_id: str | None, ts: str) -> str:
    manifest = build_manifest(data_id, request_id, ts)
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def verify_webhook_signature(
    secret: str,
    signature_header: str | None,
    request_id: str | None,
    data_id: str | None,
) -> bool:
    """Verify a webhook signature using constant-time comparison.

    An empty secret disables verification (development mode).
    """
    if not secret:
        return True
    if not data_id:
        return False

    parts = parse_signature_header(signature_header)
    ts, provided = parts.get("ts"), parts.get("v1")
    if not ts or not provided:
        return False

    expected = compute_signature(secret, data_id, request_id, ts)
    return secrets.compare_digest(expected, provided)
