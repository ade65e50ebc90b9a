from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from drf_spectacular.views import SpectacularAPIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

# ADMIN_URL comes from env; normalise to "<path>/"
admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    # Auth
    path("api/v1/auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("api/v1/auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),

    # Core Apps
    path("api/v1/orders/", include("apps.orders.urls")),
    path("api/v1/payments/", include("apps.payments.urls")),
    path("api/v1/shipping/", include("apps.shipping.urls")),
    path("api/v1/verification/", include("apps.verification.urls")),
    path("api/v1/utils/", include("apps.utils.urls")),

    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
]
