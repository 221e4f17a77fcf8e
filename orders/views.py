# orders/views.py: ViewSets de pedidos, pagamentos e gateways + webhook público
import logging

from django.db.models import ProtectedError
from django.views.decorators.csrf import csrf_exempt
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .exceptions import GatewayHasPayments, GatewayNotFound, PaymentNotFound
from .filters import OrderFilter, PaymentFilter
from .gateways import registry
from .models import Gateway, Order, Payment
from .serializers import (
    GatewaySerializer,
    OrderCreateSerializer,
    OrderReadSerializer,
    OrderUpdateSerializer,
    PaymentInitSerializer,
    PaymentProcessSerializer,
    PaymentSerializer,
)
from .services.order_lifecycle import OrderLifecycle
from .services.payment_lifecycle import PaymentLifecycle
from .services.transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


# -------------------------------------------------
# Pedidos (CRUD + transições): leitura e escrita separadas
# -------------------------------------------------
class OrderViewSet(viewsets.ModelViewSet):
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter
    lookup_value_regex = r"\d+"
    lifecycle_class = OrderLifecycle

    def get_queryset(self):
        # só os pedidos do usuário autenticado; os demais "não existem" (404)
        return (
            Order.objects.filter(user=self.request.user)
            .prefetch_related("items")
            .order_by("-id")
        )

    def get_serializer_class(self):
        if self.action == "create":
            return OrderCreateSerializer
        if self.action in ("update", "partial_update"):
            return OrderUpdateSerializer
        return OrderReadSerializer

    def get_lifecycle(self):
        return self.lifecycle_class()

    def _read(self, order, status_code=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderReadSerializer(order, context=self.get_serializer_context()).data, status=status_code)

    def retrieve(self, request, *args, **kwargs):
        order = self.get_lifecycle().get_for_user(request.user, kwargs["pk"])
        return self._read(order)

    def create(self, request, *args, **kwargs):
        ser = OrderCreateSerializer(data=request.data, context=self.get_serializer_context())
        ser.is_valid(raise_exception=True)
        order = ser.save()
        return self._read(order, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        # PUT e PATCH têm a mesma semântica: campos ausentes ficam como estão
        ser = OrderUpdateSerializer(data=request.data, context=self.get_serializer_context())
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        items = data.pop("items", None)
        order = self.get_lifecycle().update(request.user, kwargs["pk"], fields=data, items=items)
        return self._read(order)

    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        self.get_lifecycle().delete(request.user, kwargs["pk"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        order = self.get_lifecycle().confirm(request.user, pk)
        return self._read(order)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_lifecycle().cancel(request.user, pk)
        return self._read(order)

    @action(detail=True, methods=["post"], url_path="payments/process", serializer_class=PaymentProcessSerializer)
    def process_payment(self, request, pk=None):
        ser = PaymentProcessSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        payment = PaymentLifecycle().create(
            request.user,
            pk,
            data["gateway_id"].pk,
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        return Response(
            {"message": "Payment initialized.", "data": PaymentInitSerializer(payment).data},
            status=status.HTTP_201_CREATED,
        )


# -------------------------------------------------
# Pagamentos (somente leitura, pedidos do próprio usuário)
# -------------------------------------------------
class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = PaymentFilter
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return Payment.objects.filter(order__user=self.request.user).order_by("-id")

    def get_object(self):
        payment = self.get_queryset().filter(pk=self.kwargs["pk"]).first()
        if payment is None:
            raise PaymentNotFound("Payment not found")
        return payment


@csrf_exempt
@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook(request, gateway_id: int):
    """
    Webhook público do gateway. Sem autenticação: a verificação de assinatura
    fica a cargo de cada plugin (headers são repassados).
    """
    payload = request.data
    if hasattr(payload, "dict"):
        payload = payload.dict()
    elif not isinstance(payload, dict):
        payload = {}
    # alguns provedores (Mercado Pago) mandam type/data.id na query string
    payload = {**request.query_params.dict(), **payload}
    headers = dict(request.headers)
    logger.info(f"Webhook recebido para o gateway {gateway_id}")

    payment = PaymentLifecycle().apply_webhook(gateway_id, payload, headers=headers)
    return Response({"message": "Webhook processed.", "data": PaymentSerializer(payment).data})


# -------------------------------------------------
# Gateways (CRUD sem paginação)
# -------------------------------------------------
class GatewayViewSet(mixins.CreateModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.UpdateModelMixin,
                     mixins.DestroyModelMixin,
                     mixins.ListModelMixin,
                     viewsets.GenericViewSet):
    serializer_class = GatewaySerializer
    queryset = Gateway.objects.all().order_by("id")
    pagination_class = None
    lookup_value_regex = r"\d+"

    def get_object(self):
        gateway = Gateway.objects.filter(pk=self.kwargs["pk"]).first()
        if gateway is None:
            raise GatewayNotFound()
        self.check_object_permissions(self.request, gateway)
        return gateway

    def list(self, request, *args, **kwargs):
        ser = self.get_serializer(self.get_queryset(), many=True)
        return Response({"data": ser.data})

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        gateway = ser.save()
        logger.info(f"Gateway {gateway.pk} criado ({gateway.plugin})")
        return Response(
            {"message": "Gateway created successfully.", "data": self.get_serializer(gateway).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        ser = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        gateway = ser.save()
        logger.info(f"Gateway {gateway.pk} atualizado ({gateway.plugin})")
        return Response({"message": "Gateway updated successfully.", "data": self.get_serializer(gateway).data})

    def destroy(self, request, *args, **kwargs):
        gateway = self.get_object()
        gateway_pk = gateway.pk
        try:
            with TransactionCoordinator().atomic():
                if Payment.objects.filter(gateway_id=gateway_pk).exists():
                    raise GatewayHasPayments()
                gateway.delete()
        except ProtectedError as e:
            # pagamento criado entre a checagem e o delete
            raise GatewayHasPayments() from e
        logger.info(f"Gateway {gateway_pk} excluído")
        return Response({"message": "Gateway deleted successfully."})

    @action(detail=False, methods=["get"])
    def plugins(self, request):
        return Response(registry.describe())
