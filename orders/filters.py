# orders/filters.py: filtros de listagem (django-filter)
import django_filters

from .models import Order, Payment


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    # from/to comparam só a data (dias inteiros, inclusivo)
    date_from = django_filters.DateFilter(field_name="order_date", lookup_expr="date__gte", label="from")
    date_to = django_filters.DateFilter(field_name="order_date", lookup_expr="date__lte", label="to")

    class Meta:
        model = Order
        fields = ["status"]

    def __init__(self, data=None, *args, **kwargs):
        # "from" é palavra reservada em Python; mapeamos os nomes públicos
        if data is not None:
            data = data.copy()
            for public, internal in (("from", "date_from"), ("to", "date_to")):
                if public in data and internal not in data:
                    data[internal] = data[public]
        super().__init__(data, *args, **kwargs)


class PaymentFilter(django_filters.FilterSet):
    order_id = django_filters.NumberFilter(field_name="order_id")

    class Meta:
        model = Payment
        fields = ["order_id"]
