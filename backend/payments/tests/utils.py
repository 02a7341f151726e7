import base64
import json

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PUBLIC_KEY_PEM = PRIVATE_KEY.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
).decode("utf-8")

OTHER_PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def sign(body, key=PRIVATE_KEY):
    if isinstance(body, str):
        body = body.encode("utf-8")
    return base64.b64encode(key.sign(body, padding.PKCS1v15(), hashes.SHA256())).decode("ascii")


def chip_payload(payment_id="pay_1", status="paid", total=10000, currency="MYR", category="general", method="fpx"):
    payload = {
        "id": payment_id,
        "status": status,
        "purchase": {
            "total": total,
            "currency": currency,
            "products": [{"name": "General admission", "category": category}],
        },
        "transaction_data": {"attempts": []},
    }
    if method:
        payload["transaction_data"]["attempts"].append({"payment_method": method})
    return payload


def encode(payload):
    return json.dumps(payload).encode("utf-8")


class RecordingAnalytics:
    """Stands in for the PostHog client; records captures and flushes."""

    def __init__(self):
        self.captured = []
        self.flush_calls = 0

    def capture(self, event=None, distinct_id=None, properties=None, **kwargs):
        self.captured.append((event, distinct_id, dict(properties or {})))

    def flush(self):
        self.flush_calls += 1

    def events(self):
        return [name for name, _, _ in self.captured]
