# apps/shipping/views.py
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAdminUser

from .serializers import ShipmentSerializer, CreateShipmentSerializer
from .services import ShipmentService


class ShipmentCreateView(APIView):
    """
    Operator endpoint to (re)book the shipment of a paid order.
    """
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = CreateShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        shipment, created = ShipmentService.create_shipment(serializer.validated_data["orderId"])
        return Response({
            "success": True,
            "shipment": ShipmentSerializer(shipment).data,
            "message": "Shipment created successfully" if created else "Shipment already exists",
        }, status=status.HTTP_200_OK)
