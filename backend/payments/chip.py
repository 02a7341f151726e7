"""
CHIP (chip-in.asia) gateway helpers: the purchases API client used at
checkout and the RSA signature check applied to incoming webhooks.
"""
import base64
import binascii
import logging

import requests
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from django.conf import settings
from django.urls import reverse

logger = logging.getLogger(__name__)


class ChipError(Exception):
    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _to_bytes(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def verify_webhook_signature(body, signature, public_key):
    """
    Check the base64 `X-Signature` header against the raw request body
    (RSA PKCS#1 v1.5 over SHA-256). Returns False instead of raising so the
    view can answer 401 without a traceback.
    """
    if not body:
        logger.warning("chip_signature_missing_body")
        return False
    if not signature:
        logger.warning("chip_signature_missing_header")
        return False
    if not public_key:
        logger.warning("chip_signature_missing_public_key")
        return False

    try:
        raw_signature = base64.b64decode(_to_bytes(signature).strip(), validate=True)
    except (binascii.Error, ValueError):
        logger.warning("chip_signature_not_base64")
        return False

    try:
        key = serialization.load_pem_public_key(_to_bytes(public_key))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.error("chip_signature_bad_public_key", extra={"error": str(exc)})
        return False

    try:
        key.verify(raw_signature, _to_bytes(body), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        logger.warning("chip_signature_mismatch")
        return False
    except (TypeError, AttributeError) as exc:
        # Non-RSA keys do not accept a padding argument
        logger.error("chip_signature_unsupported_key", extra={"error": str(exc)})
        return False
    return True


class ChipClient:
    def __init__(self, secret_key=None, brand_id=None, base_url=None, timeout=None):
        self.secret_key = secret_key if secret_key is not None else getattr(settings, "CHIP_SECRET_KEY", "")
        self.brand_id = brand_id if brand_id is not None else getattr(settings, "CHIP_BRAND_ID", "")
        self.base_url = (base_url or getattr(settings, "CHIP_BASE_URL", "https://gate.chip-in.asia/api/v1")).rstrip("/")
        self.timeout = timeout or getattr(settings, "CHIP_TIMEOUT", 10)

    @property
    def is_configured(self):
        return bool(self.secret_key and self.brand_id)

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ChipError(f"Could not reach CHIP: {exc}") from exc
        if resp.status_code >= 300:
            raise ChipError(
                f"CHIP responded {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp.json()

    def create_purchase(
        self,
        *,
        amount,
        email,
        full_name,
        products,
        success_callback,
        success_redirect,
        failure_redirect,
        currency="MYR",
        phone="",
        reference=None,
        cancel_redirect=None,
        notes=None,
    ):
        """
        Create a purchase and return the gateway response (`id`, `checkout_url`, ...).
        Amounts are given in major units and sent in cents, as CHIP expects.
        """
        payload = {
            "brand_id": self.brand_id,
            "purchase": {
                "currency": currency,
                "products": [
                    {
                        "name": p["name"],
                        "quantity": str(p.get("quantity", 1)),
                        "price": int(round(float(p["price"]) * 100)),
                        "category": p.get("category", ""),
                    }
                    for p in products
                ],
                "total_override": int(round(float(amount) * 100)),
                "notes": notes or "",
            },
            "client": {
                "email": email,
                "phone": phone or "",
                "full_name": full_name,
            },
            "success_callback": success_callback,
            "success_redirect": success_redirect,
            "failure_redirect": failure_redirect,
            "cancel_redirect": cancel_redirect or failure_redirect,
            "reference": reference or "",
            "platform": "web",
            "send_receipt": True,
        }
        return self._request("POST", "/purchases/", json=payload)

    def get_purchase(self, purchase_id):
        return self._request("GET", f"/purchases/{purchase_id}/")


def webhook_callback_url(request):
    """Absolute URL CHIP should call back, public host first when deployed."""
    path = reverse("chip-webhook")
    public_api = getattr(settings, "PUBLIC_API_URL", "")
    if public_api and not settings.DEBUG:
        return f"{public_api}{path}"
    return request.build_absolute_uri(path)
