# orders/serializers.py: pedido/itens com SERIALIZERS separados p/ escrita/leitura, gateways e pagamentos
# Regras de estado ficam nos serviços (orders/services); aqui só validação de formato -> 400.

from decimal import Decimal

from rest_framework import serializers

from .exceptions import GatewayConfigInvalid
from .gateways import registry
from .models import Gateway, Order, OrderItem, Payment
from .services.order_lifecycle import OrderLifecycle


def _money(value) -> str:
    return f"{Decimal(value or 0).quantize(Decimal('0.001'))}"


# ===========================
#  PEDIDO / ITENS (WRITE)
# ===========================
class OrderItemWriteSerializer(serializers.Serializer):
    # id presente => atualiza o item existente; ausente => cria
    id = serializers.IntegerField(required=False, min_value=1)
    product_name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal("0"))
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


def _reject_duplicate_ids(items):
    seen = set()
    for item in items:
        item_id = item.get("id")
        if item_id is None:
            continue
        if item_id in seen:
            raise serializers.ValidationError(f"Duplicate item id {item_id}.")
        seen.add(item_id)
    return items


class OrderCreateSerializer(serializers.Serializer):
    order_date = serializers.DateTimeField()
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    items = OrderItemWriteSerializer(many=True, allow_empty=False)

    def validate_items(self, items):
        if any(item.get("id") is not None for item in items):
            raise serializers.ValidationError("New orders cannot reference existing item ids.")
        return items

    def create(self, validated_data):
        request = self.context["request"]
        return OrderLifecycle().create(
            request.user,
            order_date=validated_data["order_date"],
            notes=validated_data.get("notes"),
            items=validated_data["items"],
        )

    def to_representation(self, instance):
        # Após criar, devolvemos o formato de leitura completo (com itens + total)
        return OrderReadSerializer(instance, context=self.context).data


class OrderUpdateSerializer(serializers.Serializer):
    order_date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    # substituição completa da lista de itens (ver OrderItemReconciler)
    items = OrderItemWriteSerializer(many=True, required=False, allow_empty=False)

    def validate_items(self, items):
        return _reject_duplicate_ids(items)


# ===========================
#  PEDIDO / ITENS (READ)
# ===========================
class OrderItemReadSerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField(read_only=True)
    subtotal = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ("id", "order_id", "product_name", "quantity", "price", "subtotal", "notes")

    def get_subtotal(self, obj):
        return _money(obj.subtotal)


class OrderReadSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    items = OrderItemReadSerializer(many=True, read_only=True)
    total_price = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = (
            "id",
            "user_id",
            "status",
            "order_date",
            "notes",
            "total_price",
            "items",
            "created_at",
            "updated_at",
        )

    def get_total_price(self, obj):
        return _money(obj.total)


# --------- Gateways ---------
class GatewaySerializer(serializers.ModelSerializer):
    config = serializers.JSONField(required=False)

    class Meta:
        model = Gateway
        fields = ("id", "name", "plugin", "config", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")

    def validate_plugin(self, value):
        # chave fora da allow-list -> GatewayNotImplemented (422)
        registry.get_class(value)
        return value

    def validate(self, attrs):
        plugin = attrs.get("plugin", getattr(self.instance, "plugin", None))
        if "config" in attrs:
            config = attrs["config"]
        elif self.instance is not None:
            config = self.instance.config
        else:
            config = {}
            attrs["config"] = config

        try:
            registry.check_config(plugin, config)
        except GatewayConfigInvalid as e:
            raise serializers.ValidationError({"config": e.detail})
        return attrs


# --------- Pagamentos ---------
class PaymentSerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField(read_only=True)
    gateway_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Payment
        fields = (
            "id",
            "order_id",
            "gateway_id",
            "gateway_payment_id",
            "payment_method",
            "payment_date",
            "status",
            "notes",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class PaymentInitSerializer(PaymentSerializer):
    """Resposta do process: inclui os dados extras devolvidos pelo gateway (ex.: init_point)."""
    gateway_data = serializers.SerializerMethodField()

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ("gateway_data",)
        read_only_fields = fields

    def get_gateway_data(self, obj):
        return getattr(obj, "gateway_data", None) or {}


class PaymentProcessSerializer(serializers.Serializer):
    gateway_id = serializers.PrimaryKeyRelatedField(queryset=Gateway.objects.all())
    payment_method = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(max_length=1000, required=False, allow_null=True, allow_blank=True)
