# apps/payments/gateway.py
import hashlib
import hmac
import logging

import requests
from requests import RequestException
from django.conf import settings

logger = logging.getLogger(__name__)

# udf1..udf5 are always sent empty, followed by the five reserved slots
UDF_FIELDS = ("udf1", "udf2", "udf3", "udf4", "udf5")
RESERVED_SLOTS = 5


class PayUError(Exception):
    pass


class PayUClient:
    """
    Thin client for PayU hosted checkout: request/response hashing and
    creation of the hosted payment page.
    """

    def __init__(self, key=None, salt=None, base_url=None, timeout=None):
        self.key = key if key is not None else settings.PAYU_MERCHANT_KEY
        self.salt = salt if salt is not None else settings.PAYU_SALT
        self.base_url = (base_url or settings.PAYU_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYU_TIMEOUT

    @property
    def is_configured(self):
        return bool(self.key and self.salt)

    @staticmethod
    def _sha512(raw: str) -> str:
        return hashlib.sha512(raw.encode("utf-8")).hexdigest()

    def request_hash(self, txnid, amount, productinfo, firstname, email, udf=None) -> str:
        """
        sha512(key|txnid|amount|productinfo|firstname|email|udf1|udf2|udf3|udf4|udf5||||||salt)
        """
        udf = udf or {}
        parts = [self.key, txnid, amount, productinfo, firstname, email]
        parts += [udf.get(name, "") for name in UDF_FIELDS]
        parts += [""] * RESERVED_SLOTS
        parts.append(self.salt)
        return self._sha512("|".join(str(p) for p in parts))

    def response_hash(self, payload) -> str:
        """
        Reverse hash PayU sends back with the transaction result:
        sha512(salt|status||||||udf5|udf4|udf3|udf2|udf1|email|firstname|productinfo|amount|txnid|key)
        """
        parts = [self.salt, payload.get("status", "")]
        parts += [""] * RESERVED_SLOTS
        parts += [payload.get(name, "") for name in reversed(UDF_FIELDS)]
        parts += [
            payload.get("email", ""),
            payload.get("firstname", ""),
            payload.get("productinfo", ""),
            payload.get("amount", ""),
            payload.get("txnid", ""),
            self.key,
        ]
        return self._sha512("|".join(str(p) for p in parts))

    def verify_response(self, payload) -> bool:
        received = payload.get("hash") or ""
        return hmac.compare_digest(self.response_hash(payload).lower(), received.lower())

    def build_payment_params(self, *, txnid, amount, productinfo, firstname, email, phone, surl, furl) -> dict:
        if not self.is_configured:
            raise PayUError("PayU credentials are not configured")
        if not txnid or not amount:
            raise PayUError("txnid and amount are required")

        return {
            "key": self.key,
            "txnid": txnid,
            "amount": amount,
            "productinfo": productinfo,
            "firstname": firstname,
            "email": email,
            "phone": phone,
            "surl": surl,
            "furl": furl,
            "hash": self.request_hash(txnid, amount, productinfo, firstname, email),
        }

    def create_payment_page(self, params: dict) -> str:
        """
        Posts the form server-side and returns the hosted page URL PayU
        redirects to.
        """
        url = f"{self.base_url}/_payment"
        try:
            resp = requests.post(url, data=params, allow_redirects=False, timeout=self.timeout)
        except RequestException as e:
            raise PayUError(f"Gateway request failed: {e}")

        location = resp.headers.get("Location")
        if resp.is_redirect and location:
            # Relative redirects are resolved against the gateway host
            if location.startswith("/"):
                location = f"{self.base_url}{location}"
            return location

        logger.error(f"PayU returned HTTP {resp.status_code} without redirect for txn {params.get('txnid')}")
        raise PayUError(f"Unexpected gateway response: HTTP {resp.status_code}")
