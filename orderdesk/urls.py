# orderdesk/urls.py: admin, health e as rotas dos apps accounts e orders
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def health(_request):
    return JsonResponse({"service": "orderdesk", "status": "healthy"})


urlpatterns = [
    path("admin/", admin.site.urls),

    path("api/health", health),
    path("api/health/", health),

    path("api/auth/", include("accounts.urls")),
    path("api/", include("orders.urls")),
]
