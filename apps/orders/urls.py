from django.urls import path
from .views import OrderTrackingView, CartItemView

urlpatterns = [
    path("cart/items/", CartItemView.as_view(), name="cart-items"),
    path("<str:order_id>/tracking/", OrderTrackingView.as_view(), name="order-tracking"),
]
