import logging

from django.http import HttpResponseRedirect
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework.parsers import FormParser, MultiPartParser, JSONParser

from apps.utils.exceptions import BusinessLogicException, AuthenticationError
from apps.utils.utils import request_origin
from .serializers import InitiatePaymentSerializer, PaymentResultSerializer
from .services import PaymentService

logger = logging.getLogger(__name__)


class PaymentInitiateView(APIView):
    """
    Starts a PayU checkout for an order owned by the caller.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        if not request.user.is_authenticated:
            raise AuthenticationError("Unauthorized")

        serializer = InitiatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PaymentService.initiate_payment(
            request.user,
            request_origin(request),
            order_id=data["orderId"],
            amount=data["amount"],
            product_info=data["productInfo"],
            first_name=data["firstName"],
            email=data["email"],
            phone=data["phone"],
        )
        return Response(result, status=status.HTTP_200_OK)


@method_decorator(csrf_exempt, name="dispatch")
class PaymentCallbackView(APIView):
    """
    PayU posts (or redirects) the transaction result here. Always answers
    with a redirect to the storefront result page.
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [FormParser, MultiPartParser, JSONParser]

    def get(self, request):
        return self._handle(request, request.query_params)

    def post(self, request):
        return self._handle(request, request.data)

    def _handle(self, request, params):
        origin = request_origin(request)
        payload = params.dict() if hasattr(params, "dict") else dict(params)
        txnid = payload.get("txnid")

        try:
            result = PaymentService.handle_callback(payload)
        except BusinessLogicException as e:
            logger.error(f"Payment callback failed for {txnid}: {e.message}", extra={"txnid": txnid})
            return HttpResponseRedirect(PaymentService.failure_redirect(origin, txnid=txnid, error=e.message))
        except Exception as e:
            logger.exception(f"Unexpected error in payment callback for {txnid}")
            return HttpResponseRedirect(PaymentService.failure_redirect(origin, txnid=txnid, error=str(e)))

        return HttpResponseRedirect(PaymentService.redirect_for(origin, result))


class PaymentResultView(APIView):
    """
    Re-reads order and payment state for /payment-success and /payment-failure.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        result = PaymentService.get_payment_result(
            order_id=request.query_params.get("orderId"),
            txnid=request.query_params.get("txnid"),
            method=request.query_params.get("method"),
        )
        return Response(PaymentResultSerializer(result).data)
