"""
Máquina de estados do pedido.

    pending -> confirmed
    pending -> cancelled

confirmed e cancelled são terminais. Itens só mudam enquanto o pedido está
pending; a exclusão depende apenas de não haver pagamento.
"""

from typing import Any, Dict, Iterable, Optional
import logging

from ..exceptions import InvalidTransition, OrderHasPayment, OrderNotFound, OrderNotPayable
from ..models import Order, OrderItem
from .reconciliation import OrderItemReconciler
from .transactions import TransactionCoordinator

logger = logging.getLogger(__name__)

# ação -> (status de origem permitidos, status de destino, mensagem de erro)
TRANSITIONS = {
    "confirm": ({Order.STATUS_PENDING}, Order.STATUS_CONFIRMED, "Only pending orders can be confirmed"),
    "cancel": ({Order.STATUS_PENDING}, Order.STATUS_CANCELLED, "Only pending orders can be cancelled"),
}

ORDER_FIELDS = ("order_date", "notes")


def ensure_mutable(order: Order) -> None:
    if order.status != Order.STATUS_PENDING:
        raise InvalidTransition("Only pending orders can be updated")


def ensure_deletable(order: Order) -> None:
    if order.has_payment:
        raise OrderHasPayment()


def ensure_payable(order: Order) -> None:
    if order.status != Order.STATUS_CONFIRMED:
        raise OrderNotPayable("Order must be confirmed before processing payment.")
    if order.has_payment:
        raise OrderNotPayable("Order already has a payment.")


def apply_transition(order: Order, action: str) -> Order:
    allowed, target, message = TRANSITIONS[action]
    if order.status not in allowed:
        raise InvalidTransition(message)
    previous = order.status
    order.status = target
    order.save(update_fields=["status", "updated_at"])
    logger.info(f"Pedido {order.pk}: {previous} -> {target}")
    return order


class OrderLifecycle:
    """
    Operações do pedido para um usuário autenticado (principal).

    O principal é sempre explícito; pedidos de outro usuário se comportam
    como inexistentes (OrderNotFound).
    """

    def __init__(self, coordinator: Optional[TransactionCoordinator] = None):
        self.coordinator = coordinator or TransactionCoordinator()

    def get_for_user(self, principal, order_id, lock: bool = False) -> Order:
        qs = Order.objects.filter(pk=order_id, user_id=principal.pk)
        if lock:
            qs = qs.select_for_update()
        order = qs.first()
        if order is None:
            raise OrderNotFound()
        return order

    def create(self, principal, *, order_date, items: Iterable[Dict[str, Any]], notes: Optional[str] = None) -> Order:
        with self.coordinator.atomic():
            order = Order.objects.create(
                user=principal,
                status=Order.STATUS_PENDING,
                order_date=order_date,
                notes=notes,
            )
            for item in items:
                OrderItem.objects.create(
                    order=order,
                    product_name=item["product_name"],
                    quantity=item["quantity"],
                    price=item["price"],
                    notes=item.get("notes"),
                )
        logger.info(f"Pedido {order.pk} criado para o usuário {principal.pk}")
        return order

    def update(self, principal, order_id, *, fields: Optional[Dict[str, Any]] = None,
               items: Optional[Iterable[Dict[str, Any]]] = None) -> Order:
        """
        Atualiza campos do pedido e, se `items` vier, reconcilia os itens.
        Tudo numa transação só.
        """
        fields = {k: v for k, v in (fields or {}).items() if k in ORDER_FIELDS}
        with self.coordinator.atomic():
            order = self.get_for_user(principal, order_id, lock=True)
            ensure_mutable(order)

            if items is not None:
                reconciler = OrderItemReconciler(order)
                reconciler.apply(reconciler.plan(items))

            if fields:
                for name, value in fields.items():
                    setattr(order, name, value)
                order.save(update_fields=[*fields.keys(), "updated_at"])
        return order

    def delete(self, principal, order_id) -> None:
        with self.coordinator.atomic():
            order = self.get_for_user(principal, order_id, lock=True)
            ensure_deletable(order)
            order_pk = order.pk
            # itens caem em cascata
            order.delete()
        logger.info(f"Pedido {order_pk} excluído")

    def confirm(self, principal, order_id) -> Order:
        with self.coordinator.atomic():
            order = self.get_for_user(principal, order_id, lock=True)
            return apply_transition(order, "confirm")

    def cancel(self, principal, order_id) -> Order:
        with self.coordinator.atomic():
            order = self.get_for_user(principal, order_id, lock=True)
            return apply_transition(order, "cancel")
