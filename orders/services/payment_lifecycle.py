"""
Máquina de estados do pagamento.

    pending -> successful | failed | canceled

O pagamento nasce pending quando o pedido está elegível e o gateway aceita a
chamada; depois só muda pelo webhook, que sempre sobrescreve o status com o
valor normalizado pelo plugin (ex.: successful -> canceled num estorno).
"""

from typing import Any, Mapping, Optional
import logging

from django.utils import timezone

from ..exceptions import (
    GatewayFailure,
    GatewayNotFound,
    MalformedWebhook,
    OrderFlowError,
    OrderNotPayable,
    PaymentNotFound,
)
from ..gateways import registry as default_registry
from ..gateways.registry import GatewayRegistry
from ..models import Gateway, Payment
from .order_lifecycle import OrderLifecycle, ensure_payable
from .transactions import TransactionCoordinator

logger = logging.getLogger(__name__)

VALID_STATUSES = {choice for choice, _label in Payment.STATUS_CHOICES}


class PaymentLifecycle:

    def __init__(self, registry: Optional[GatewayRegistry] = None,
                 coordinator: Optional[TransactionCoordinator] = None):
        self.registry = registry or default_registry
        self.coordinator = coordinator or TransactionCoordinator()
        self.orders = OrderLifecycle(self.coordinator)

    @staticmethod
    def get_gateway(gateway_id) -> Gateway:
        gateway = Gateway.objects.filter(pk=gateway_id).first()
        if gateway is None:
            raise GatewayNotFound()
        return gateway

    def _creation_conflict(self, order_id):
        def handler(error):
            # perdedor da corrida pelo mesmo pedido
            if Payment.objects.filter(order_id=order_id).exists():
                return OrderNotPayable("Order already has a payment.")
            return GatewayFailure("Gateway returned a payment id that is already in use.")
        return handler

    def create(self, principal, order_id, gateway_id, payment_method: Optional[str] = None,
               notes: Optional[str] = None) -> Payment:
        """
        Cria o pagamento PENDING e chama init_payment na mesma transação.

        Se o plugin falhar, nada é gravado (nem o pagamento nem o id externo).
        """
        with self.coordinator.atomic(on_integrity_error=self._creation_conflict(order_id)):
            order = self.orders.get_for_user(principal, order_id, lock=True)
            ensure_payable(order)

            gateway = self.get_gateway(gateway_id)
            plugin = self.registry.resolve(gateway)

            payment = Payment.objects.create(
                order=order,
                gateway=gateway,
                gateway_payment_id=None,
                payment_method=payment_method or "",
                payment_date=timezone.now(),
                status=Payment.STATUS_PENDING,
                notes=notes,
            )

            try:
                result = plugin.init_payment(order, gateway, payment)
            except OrderFlowError:
                raise
            except Exception as e:
                logger.exception(f"Gateway {gateway.pk} ({gateway.plugin}) falhou ao iniciar o pagamento do pedido {order.pk}")
                raise GatewayFailure() from e

            if not result.gateway_payment_id:
                raise GatewayFailure("Gateway did not return a payment id.")

            payment.gateway_payment_id = str(result.gateway_payment_id)
            payment.save(update_fields=["gateway_payment_id", "updated_at"])

        payment.gateway_data = result.data
        logger.info(f"Pagamento {payment.pk} iniciado no gateway {gateway.pk}: {payment.gateway_payment_id}")
        return payment

    def apply_webhook(self, gateway_id, payload: Mapping[str, Any],
                      headers: Optional[Mapping[str, str]] = None) -> Payment:
        """
        Normaliza a notificação e aplica o novo status ao pagamento.

        Reaplicar o mesmo payload é um overwrite idempotente.
        """
        gateway = self.get_gateway(gateway_id)
        plugin = self.registry.resolve(gateway)

        try:
            result = plugin.finalize_payment(gateway, payload, headers=headers)
        except OrderFlowError:
            raise
        except Exception as e:
            logger.exception(f"Gateway {gateway.pk} ({gateway.plugin}) falhou ao interpretar o webhook")
            raise GatewayFailure() from e

        if not result.gateway_payment_id:
            raise MalformedWebhook("Missing gateway_payment_id")

        status = str(result.status or "").strip().lower()
        if status not in VALID_STATUSES:
            raise MalformedWebhook(f"Unknown payment status '{result.status}'.")

        with self.coordinator.atomic():
            payment = (
                Payment.objects.select_for_update()
                .filter(gateway=gateway, gateway_payment_id=result.gateway_payment_id)
                .first()
            )
            if payment is None:
                logger.warning(f"Webhook do gateway {gateway.pk} sem pagamento: {result.gateway_payment_id}")
                raise PaymentNotFound()

            previous = payment.status
            payment.status = status
            payment.payment_date = result.payment_date or timezone.now()
            if result.notes is not None:
                payment.notes = result.notes
            payment.save(update_fields=["status", "payment_date", "notes", "updated_at"])

        logger.info(f"Pagamento {payment.pk}: {previous} -> {status} (webhook do gateway {gateway.pk})")
        return payment
