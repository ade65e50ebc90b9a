# apps/utils/views.py
from django.conf import settings
from django.db import connection
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": settings.SPECTACULAR_SETTINGS["VERSION"],
            "debug": settings.DEBUG,
        })


class HealthCheckView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
        except Exception as e:
            return Response({"status": "error", "detail": str(e), "components": {"db": "down"}}, status=503)
        return Response({"status": "ok", "components": {"db": "ok"}})
