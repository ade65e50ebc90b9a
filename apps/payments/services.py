import logging
from dataclasses import dataclass
from decimal import InvalidOperation

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction, DatabaseError
from django.urls import reverse

from apps.orders.models import Order
from apps.orders.services import OrderService, CartService
from apps.shipping.services import ShipmentService
from apps.shipping.tasks import create_shipment_task
from apps.utils.exceptions import (
    AuthenticationError,
    PaymentInitiationError,
    MissingTransactionError,
    PaymentRecordNotFoundError,
    CallbackVerificationError,
    OrderUpdateError,
    ResourceNotFoundError,
    ShipmentCreationError,
)
from apps.utils.utils import epoch_millis, format_amount, build_url
from .gateway import PayUClient, PayUError
from .models import Payment, PaymentStatus, PaymentMethod

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "Payment failed"
AMOUNT_MISMATCH_MESSAGE = "Paid amount does not match the order total"


@dataclass
class CallbackResult:
    """
    Outcome of one gateway callback, enough to build the browser redirect.
    """
    txnid: str
    order_id: str
    status: str
    error_message: str = ""
    # True only when this callback moved the payment out of pending
    transitioned: bool = False
    user_id: object = None

    @property
    def succeeded(self):
        return self.status == PaymentStatus.COMPLETED


class PaymentService:
    """
    Service to handle the PayU payment lifecycle.
    """

    @staticmethod
    def get_gateway_client():
        return PayUClient()

    @staticmethod
    def generate_transaction_id(order_id: str) -> str:
        return f"TXN_{order_id}_{epoch_millis()}"

    @staticmethod
    def callback_url(origin: str) -> str:
        return f"{origin}{reverse('payment-callback')}"

    @staticmethod
    def initiate_payment(user, origin: str, *, order_id, amount, product_info, first_name, email, phone) -> dict:
        """
        Creates a pending Payment for the order and returns where to send the
        buyer: {"paymentUrl", "transactionId"}.
        """
        if user is None or not user.is_authenticated:
            raise AuthenticationError("Unauthorized")

        client = PaymentService.get_gateway_client()
        if not client.is_configured:
            logger.error("PayU credentials missing, cannot initiate payment")
            raise PaymentInitiationError("PayU credentials not configured")

        try:
            order = Order.objects.get(id=order_id)
        except Order.DoesNotExist:
            raise PaymentInitiationError(f"Order {order_id} not found")

        if order.user_id and order.user_id != user.pk:
            logger.warning(f"User {user.pk} tried to pay for order {order_id} owned by {order.user_id}")
            raise PaymentInitiationError(f"Order {order_id} not found")

        if order.is_paid:
            raise PaymentInitiationError(f"Order {order_id} is already paid")

        formatted_amount = format_amount(amount)
        order_total = format_amount(order.total_amount)
        if formatted_amount != order_total:
            logger.warning(
                f"Amount {formatted_amount} sent for order {order_id} does not match total {order_total}",
                extra={"order_id": order.id},
            )
            raise PaymentInitiationError(f"Amount {formatted_amount} does not match order total {order_total}")

        txnid = PaymentService.generate_transaction_id(order.id)
        callback = PaymentService.callback_url(origin)

        try:
            params = client.build_payment_params(
                txnid=txnid,
                amount=formatted_amount,
                productinfo=product_info,
                firstname=first_name,
                email=email,
                phone=phone,
                surl=callback,
                furl=callback,
            )
        except PayUError as e:
            raise PaymentInitiationError(str(e))

        # Committed before talking to the gateway so the callback can always find it
        try:
            with transaction.atomic():
                Payment.objects.create(
                    order=order,
                    user=user,
                    payment_id=txnid,
                    payment_method=PaymentMethod.PAYU,
                    amount=formatted_amount,
                    status=PaymentStatus.PENDING,
                    payment_data=params,
                )
        except DatabaseError as e:
            logger.error(f"Could not store pending payment {txnid}: {e}")
            raise PaymentInitiationError(f"Failed to create payment record: {e}")

        logger.info(f"Pending payment {txnid} created for order {order.id}", extra={"order_id": order.id, "txnid": txnid})

        if settings.PAYU_SIMULATE:
            payment_url = build_url(callback, "", {"status": "success", "txnid": txnid, "amount": formatted_amount})
            logger.warning(f"PAYU_SIMULATE on, returning simulated payment URL for {txnid}")
            return {"paymentUrl": payment_url, "transactionId": txnid}

        try:
            payment_url = client.create_payment_page(params)
        except PayUError as e:
            # The pending Payment stays behind as an abandoned attempt
            logger.error(f"PayU payment page creation failed for {txnid}: {e}", extra={"txnid": txnid})
            raise PaymentInitiationError(str(e))

        return {"paymentUrl": payment_url, "transactionId": txnid}

    @staticmethod
    def verify_callback_hash(payload: dict):
        client = PaymentService.get_gateway_client()
        txnid = payload.get("txnid")
        if not payload.get("hash") or not client.is_configured:
            if settings.PAYU_ENFORCE_RESPONSE_HASH:
                logger.error(f"Callback for {txnid} carries no verifiable hash, rejecting", extra={"txnid": txnid})
                raise CallbackVerificationError("Missing payment response signature")
            return

        if client.verify_response(payload):
            return

        if settings.PAYU_ENFORCE_RESPONSE_HASH:
            logger.error(f"Callback hash mismatch for {txnid}, rejecting", extra={"txnid": txnid})
            raise CallbackVerificationError("Invalid payment response signature")
        logger.warning(f"Callback hash mismatch for {txnid}", extra={"txnid": txnid})

    @staticmethod
    def amount_matches(payload: dict, payment) -> bool:
        """
        A reported amount must equal the stored one. Callbacks without an
        amount are judged on status alone.
        """
        reported = payload.get("amount")
        if reported in (None, ""):
            return True
        try:
            return format_amount(reported) == format_amount(payment.amount)
        except (InvalidOperation, ValueError):
            return False

    @staticmethod
    def failure_message(payload: dict) -> str:
        return payload.get("error_Message") or payload.get("field9") or DEFAULT_FAILURE_MESSAGE

    @staticmethod
    def handle_callback(payload: dict) -> CallbackResult:
        """
        Applies a gateway result to the Payment and its Order.

        PENDING -> COMPLETED | FAILED, once. Later callbacks for the same
        txnid leave the stored state alone and report it back.
        """
        payload = dict(payload)
        txnid = payload.get("txnid")
        if not txnid:
            raise MissingTransactionError("Missing transaction ID")

        PaymentService.verify_callback_hash(payload)

        gateway_ok = payload.get("status") == "success"
        outcome = PaymentStatus.COMPLETED if gateway_ok else PaymentStatus.FAILED
        message = "" if gateway_ok else PaymentService.failure_message(payload)

        logger.info(f"PayU callback for {txnid}: status={payload.get('status')}", extra={"txnid": txnid})

        with transaction.atomic():
            try:
                payment = Payment.objects.select_for_update().get(payment_id=txnid)
            except Payment.DoesNotExist:
                logger.error(f"No payment record for txnid {txnid}", extra={"txnid": txnid})
                raise PaymentRecordNotFoundError("Payment record not found")

            if payment.is_terminal:
                logger.info(
                    f"Payment {txnid} already {payment.status}, ignoring callback with status {payload.get('status')}",
                    extra={"txnid": txnid},
                )
                return CallbackResult(
                    txnid=txnid,
                    order_id=payment.order_id,
                    status=payment.status,
                    error_message=payment.error_message,
                    user_id=payment.user_id,
                )

            if gateway_ok and not PaymentService.amount_matches(payload, payment):
                logger.error(
                    f"Callback amount {payload.get('amount')} for {txnid} does not match stored {payment.amount}",
                    extra={"txnid": txnid, "order_id": payment.order_id},
                )
                gateway_ok = False
                outcome = PaymentStatus.FAILED
                message = AMOUNT_MISMATCH_MESSAGE

            payment.status = outcome
            payment.gateway_response = payload
            payment.error_message = message
            try:
                payment.save(update_fields=["status", "gateway_response", "error_message", "updated_at"])
            except DatabaseError as e:
                logger.critical(f"Failed to update payment {txnid}: {e}", extra={"txnid": txnid})
                raise OrderUpdateError("Failed to update payment")

            if gateway_ok:
                OrderService.mark_payment_completed(payment.order_id)
            else:
                OrderService.mark_payment_failed(payment.order_id)

        result = CallbackResult(
            txnid=txnid,
            order_id=payment.order_id,
            status=outcome,
            error_message=message,
            transitioned=True,
            user_id=payment.user_id,
        )

        if result.succeeded:
            PaymentService.run_post_payment_actions(result)

        return result

    @staticmethod
    def run_post_payment_actions(result: CallbackResult):
        """
        Cart clearing and shipment dispatch after a confirmed payment.
        Failures here are logged and never touch the confirmed payment.
        """
        if result.user_id:
            try:
                CartService.clear(get_user_model().objects.get(pk=result.user_id))
            except (ObjectDoesNotExist, DatabaseError) as e:
                logger.error(f"Cart clear failed for order {result.order_id}: {e}", extra={"order_id": result.order_id})

        try:
            if settings.SHIPMENT_DISPATCH_ASYNC:
                transaction.on_commit(lambda: PaymentService.queue_shipment(result.order_id))
            else:
                ShipmentService.create_shipment(result.order_id)
        except ShipmentCreationError as e:
            logger.error(
                f"Shipment creation failed for paid order {result.order_id}: {e.message}",
                extra={"order_id": result.order_id},
            )
        except Exception:
            # The payment is already committed, the buyer must still land on success
            logger.exception(
                f"Unexpected error creating shipment for paid order {result.order_id}",
                extra={"order_id": result.order_id},
            )

    @staticmethod
    def queue_shipment(order_id):
        try:
            create_shipment_task.delay(order_id)
        except Exception:
            logger.exception(f"Could not queue shipment for order {order_id}", extra={"order_id": order_id})
            return
        logger.info(f"Shipment dispatch queued for order {order_id}", extra={"order_id": order_id})

    @staticmethod
    def success_redirect(origin: str, result: CallbackResult) -> str:
        return build_url(origin, "/payment-success", {
            "txnid": result.txnid,
            "status": "success",
            "orderId": result.order_id,
            "method": "online",
        })

    @staticmethod
    def failure_redirect(origin: str, txnid=None, error=DEFAULT_FAILURE_MESSAGE, order_id=None) -> str:
        return build_url(origin, "/payment-failure", {
            "txnid": txnid,
            "status": "failed",
            "error": error or DEFAULT_FAILURE_MESSAGE,
            "orderId": order_id,
        })

    @staticmethod
    def redirect_for(origin: str, result: CallbackResult) -> str:
        if result.succeeded:
            return PaymentService.success_redirect(origin, result)
        return PaymentService.failure_redirect(
            origin, txnid=result.txnid, error=result.error_message, order_id=result.order_id
        )

    @staticmethod
    def get_payment_result(order_id=None, txnid=None, method=None) -> dict:
        """
        Authoritative order/payment state for the success and failure pages.
        COD orders carry no gateway transaction, only the order is returned.
        """
        if method == PaymentMethod.COD:
            if not order_id:
                raise ResourceNotFoundError("Order not found.", code="order_not_found")
            try:
                order = Order.objects.prefetch_related("items__product", "items__variant").get(id=order_id)
            except Order.DoesNotExist:
                raise ResourceNotFoundError("Order not found.", code="order_not_found")
            return {"order": order, "payment": None, "method": PaymentMethod.COD}

        if not txnid:
            raise MissingTransactionError("Missing transaction ID")

        payments = Payment.objects.select_related("order").filter(payment_id=txnid)
        if order_id:
            payments = payments.filter(order_id=order_id)
        payment = payments.first()
        if payment is None:
            raise PaymentRecordNotFoundError("Payment record not found")

        return {"order": payment.order, "payment": payment, "method": "online"}
