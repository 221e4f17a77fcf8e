# orders/urls.py: router DRF (pedidos, pagamentos, gateways) + webhook público
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import GatewayViewSet, OrderViewSet, PaymentViewSet, payment_webhook

router = DefaultRouter()
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"payments", PaymentViewSet, basename="payment")
router.register(r"gateways", GatewayViewSet, basename="gateway")

urlpatterns = [
    # antes do router para não colidir com payments/{pk}/
    path("payments/webhook/<int:gateway_id>/", payment_webhook, name="payment-webhook"),
    path("", include(router.urls)),
]
