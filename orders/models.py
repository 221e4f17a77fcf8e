# orders/models.py: Order, OrderItem, Gateway e Payment
from decimal import Decimal

from django.conf import settings
from django.db import models


# --------- Pedidos ---------
class Order(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.CASCADE)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    order_date = models.DateTimeField()
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-id"]

    def __str__(self):
        return f"Order #{self.id} ({self.status})"

    @property
    def total(self) -> Decimal:
        # soma dos subtotais; não é armazenado
        return sum((item.subtotal for item in self.items.all()), Decimal("0.000"))

    @property
    def has_payment(self) -> bool:
        return Payment.objects.filter(order_id=self.pk).exists()


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    # preço unitário com 3 casas decimais
    price = models.DecimalField(max_digits=12, decimal_places=3)
    notes = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity}x {self.product_name} on Order #{self.order_id}"

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.price)


# --------- Gateways ---------
class Gateway(models.Model):
    name = models.CharField(max_length=255)
    # chave estável do registro de plugins (ORDERS_GATEWAY_PLUGINS)
    plugin = models.CharField(max_length=64)
    config = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.name} [{self.plugin}]"


# --------- Pagamentos ---------
class Payment(models.Model):
    STATUS_PENDING = "pending"
    STATUS_SUCCESSFUL = "successful"
    STATUS_FAILED = "failed"
    STATUS_CANCELED = "canceled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_SUCCESSFUL, "Successful"),
        (STATUS_FAILED, "Failed"),
        (STATUS_CANCELED, "Canceled"),
    ]

    # OneToOne: no máximo um pagamento por pedido (garantido pelo banco)
    order = models.OneToOneField(Order, related_name="payment", on_delete=models.PROTECT)
    gateway = models.ForeignKey(Gateway, related_name="payments", on_delete=models.PROTECT)
    gateway_payment_id = models.CharField(max_length=191, null=True, blank=True)
    payment_method = models.CharField(max_length=100, blank=True, default="")
    payment_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["gateway", "gateway_payment_id"],
                name="unique_gateway_payment_id",
            ),
        ]

    def __str__(self):
        return f"Payment #{self.id} for Order #{self.order_id} ({self.status})"
