from django.urls import path
from .views import ServerInfoView, HealthCheckView


urlpatterns = [
    path("health/", HealthCheckView.as_view(), name="health-check"),
    path("info/", ServerInfoView.as_view(), name="server-info"),
]
