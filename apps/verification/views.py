from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAdminUser

from apps.utils.exceptions import BusinessLogicException
from .models import CodeUpload
from .serializers import (
    BulkUploadSerializer,
    CodeUploadSerializer,
    VerifyCodeSerializer,
    VerifyResultSerializer,
)
from .services import CodeUploadService, VerificationService


class CodeUploadView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        uploads = CodeUpload.objects.all()[:50]
        return Response(CodeUploadSerializer(uploads, many=True).data)

    def post(self, request):
        serializer = BulkUploadSerializer(data=request.data)
        if not serializer.is_valid():
            raise BusinessLogicException("Invalid codes array", code="invalid_codes")
        data = serializer.validated_data

        result = CodeUploadService.bulk_upload(
            data["codes"],
            upload_id=data.get("uploadId"),
            product_id=data.get("productId"),
            filename=data.get("filename"),
        )
        return Response(result, status=status.HTTP_200_OK)


class VerifyCodeView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = VerifyCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = VerificationService.verify(serializer.validated_data["code"])
        return Response(VerifyResultSerializer(result).data)
