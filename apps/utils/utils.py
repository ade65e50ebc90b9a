import time
import uuid
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import urlencode, quote

from django.conf import settings


def generate_order_id():
    return "ORD" + uuid.uuid4().hex[:12].upper()


def epoch_millis():
    return int(time.time() * 1000)


def format_amount(value):
    """
    Two-decimal string used both for hashing and for the gateway form.
    4999 -> "4999.00"
    """
    return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def request_origin(request):
    """
    Origin header of the browser request, falling back to FRONTEND_URL.
    """
    origin = request.headers.get("Origin") if request is not None else None
    return (origin or settings.FRONTEND_URL).rstrip("/")


def build_url(base, path, params):
    """
    Query values are percent-encoded with %20 for spaces.
    """
    query = urlencode(dict_clean(params), quote_via=quote)
    return f"{base}{path}?{query}" if query else f"{base}{path}"


def dict_clean(d: dict):
    """
    Remove keys where value is None or empty
    """
    return {k: v for k, v in d.items() if v not in [None, "", [], {}]}
