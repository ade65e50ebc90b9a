from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from .serializers import OrderTrackingResponseSerializer, CartItemInputSerializer, CartItemSerializer
from .services import OrderService, CartService


class OrderTrackingView(APIView):
    """
    Public lookup by order id: order summary, items, tracking events and shipment.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, order_id):
        order = OrderService.get_tracking(order_id)
        return Response(OrderTrackingResponseSerializer(order).data)


class CartItemView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CartItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        item = CartService.add_item(
            user=request.user,
            product_id=data["product_id"],
            variant_id=data.get("variant_id"),
            quantity=data["quantity"],
        )
        return Response(CartItemSerializer(item).data, status=status.HTTP_200_OK)
