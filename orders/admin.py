# orders/admin.py
from django.contrib import admin

from .forms import GatewayAdminForm
from .models import Gateway, Order, OrderItem, Payment


# ===============================
# Order / OrderItem
# ===============================
class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product_name", "quantity", "price", "subtotal_fmt", "notes")
    readonly_fields = ("subtotal_fmt",)

    def subtotal_fmt(self, obj):
        if not getattr(obj, "pk", None):
            return "-"
        return f"{obj.subtotal:.3f}"
    subtotal_fmt.short_description = "Subtotal"


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "order_date", "total_fmt", "created_at")
    list_filter = ("status",)
    search_fields = ("user__email", "user__username", "notes")
    date_hierarchy = "order_date"
    inlines = [OrderItemInline]

    def total_fmt(self, obj):
        return f"{obj.total:.3f}"
    total_fmt.short_description = "Total"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("user").prefetch_related("items")


# ===============================
# Gateway
# ===============================
@admin.register(Gateway)
class GatewayAdmin(admin.ModelAdmin):
    form = GatewayAdminForm
    list_display = ("id", "name", "plugin", "created_at")
    list_filter = ("plugin",)
    search_fields = ("name",)


# ===============================
# Payment
# ===============================
@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "gateway", "status", "gateway_payment_id", "payment_date")
    list_filter = ("status", "gateway")
    search_fields = ("gateway_payment_id",)
    # status muda só pelo webhook; identificadores nunca são editados à mão
    readonly_fields = ("order", "gateway", "gateway_payment_id", "status", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False
