from .order_lifecycle import OrderLifecycle
from .payment_lifecycle import PaymentLifecycle
from .reconciliation import OrderItemReconciler, ReconciliationPlan
from .transactions import TransactionCoordinator

__all__ = [
    "OrderLifecycle",
    "PaymentLifecycle",
    "OrderItemReconciler",
    "ReconciliationPlan",
    "TransactionCoordinator",
]
