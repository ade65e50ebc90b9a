from django.urls import path
from .views import CodeUploadView, VerifyCodeView

urlpatterns = [
    path("uploads/", CodeUploadView.as_view(), name="code-uploads"),
    path("verify/", VerifyCodeView.as_view(), name="code-verify"),
]
