"""
Reconciliação dos itens de um pedido (substituição completa).

- itens com id    => update
- itens sem id    => create
- itens existentes ausentes do payload => delete

O plano é calculado inteiro antes de qualquer gravação, então um id
desconhecido não deixa escrita parcial.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple
import logging

from ..exceptions import UnknownItemReference
from ..models import Order, OrderItem

logger = logging.getLogger(__name__)

ITEM_FIELDS = ("product_name", "quantity", "price", "notes")


@dataclass
class ReconciliationPlan:
    to_create: List[Dict[str, Any]] = field(default_factory=list)
    to_update: List[Tuple[OrderItem, Dict[str, Any]]] = field(default_factory=list)
    unchanged: List[OrderItem] = field(default_factory=list)
    to_delete: List[OrderItem] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)


def _item_values(entry: Dict[str, Any]) -> Dict[str, Any]:
    # notes omitido vira null (substituição completa da linha)
    return {name: entry.get(name) for name in ITEM_FIELDS}


def _differs(item: OrderItem, values: Dict[str, Any]) -> bool:
    return any(getattr(item, name) != value for name, value in values.items())


class OrderItemReconciler:

    def __init__(self, order: Order):
        self.order = order

    def plan(self, incoming: Iterable[Dict[str, Any]]) -> ReconciliationPlan:
        existing = {item.pk: item for item in OrderItem.objects.filter(order=self.order)}
        plan = ReconciliationPlan()
        referenced = set()

        for entry in incoming:
            values = _item_values(entry)
            item_id = entry.get("id")
            if item_id is None:
                plan.to_create.append(values)
                continue

            item = existing.get(int(item_id))
            if item is None:
                logger.info(f"Pedido {self.order.pk}: item {item_id} não pertence ao pedido")
                raise UnknownItemReference()

            referenced.add(item.pk)
            if _differs(item, values):
                plan.to_update.append((item, values))
            else:
                plan.unchanged.append(item)

        plan.to_delete = [item for pk, item in existing.items() if pk not in referenced]
        return plan

    def apply(self, plan: ReconciliationPlan) -> List[OrderItem]:
        for item, values in plan.to_update:
            for name, value in values.items():
                setattr(item, name, value)
            item.save(update_fields=list(ITEM_FIELDS))

        if plan.to_delete:
            OrderItem.objects.filter(
                order=self.order, pk__in=[item.pk for item in plan.to_delete]
            ).delete()

        for values in plan.to_create:
            OrderItem.objects.create(order=self.order, **values)

        logger.info(
            f"Pedido {self.order.pk}: itens reconciliados "
            f"(+{len(plan.to_create)} ~{len(plan.to_update)} -{len(plan.to_delete)})"
        )
        return list(OrderItem.objects.filter(order=self.order).order_by("id"))

    def reconcile(self, incoming: Iterable[Dict[str, Any]]) -> List[OrderItem]:
        return self.apply(self.plan(incoming))
