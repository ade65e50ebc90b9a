from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Order already paid').
    Subclasses pin the HTTP status the API answers with.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class AuthenticationError(BusinessLogicException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "authentication_failed"


class PaymentInitiationError(BusinessLogicException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "payment_initiation_failed"


class MissingTransactionError(BusinessLogicException):
    default_code = "missing_transaction_id"


class PaymentRecordNotFoundError(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "payment_not_found"


class CallbackVerificationError(BusinessLogicException):
    default_code = "callback_hash_mismatch"


class OrderUpdateError(BusinessLogicException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "order_update_failed"


class ResourceNotFoundError(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ShipmentCreationError(BusinessLogicException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "shipment_creation_failed"


class ImmutableRecordError(BusinessLogicException):
    status_code = status.HTTP_409_CONFLICT
    default_code = "immutable_record"


def _flatten_detail(detail):
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _flatten_detail(value)
            return message if field == "non_field_errors" else f"{field}: {message}"
        return ""
    if isinstance(detail, list):
        return _flatten_detail(detail[0]) if detail else ""
    return str(detail)


def custom_exception_handler(exc, context):
    # Domain errors first, they never reach DRF's default handler
    if isinstance(exc, BusinessLogicException):
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    code = getattr(exc, "default_code", "error")
    if hasattr(exc, "get_codes"):
        codes = exc.get_codes()
        if isinstance(codes, str):
            code = codes
    detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
    response.data = {"error": _flatten_detail(detail), "code": code}
    return response
