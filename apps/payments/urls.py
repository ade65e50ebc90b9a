from django.urls import path
from .views import PaymentInitiateView, PaymentCallbackView, PaymentResultView

urlpatterns = [
    path("initiate/", PaymentInitiateView.as_view(), name="payment-initiate"),
    path("callback/", PaymentCallbackView.as_view(), name="payment-callback"),
    path("result/", PaymentResultView.as_view(), name="payment-result"),
]
