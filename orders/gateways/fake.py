"""
Gateway de demonstração sem chamadas externas.
Usado em desenvolvimento e testes quando não há credenciais reais disponíveis.
"""

import uuid
from typing import Any, Mapping, Optional
import logging

from django.utils.dateparse import parse_datetime
from django.utils import timezone

from ..exceptions import MalformedWebhook
from .base import GatewayPlugin, InitResult, WebhookResult

logger = logging.getLogger(__name__)


class FakeGateway(GatewayPlugin):
    label = "Fake gateway (demo)"

    @classmethod
    def check_config(cls, config: Mapping[str, Any]) -> bool:
        return True

    def init_payment(self, order, gateway, payment) -> InitResult:
        gateway_payment_id = f"fake_{uuid.uuid4()}"
        logger.info(f"FakeGateway: pagamento {payment.pk} do pedido {order.pk} -> {gateway_payment_id}")
        return InitResult(gateway_payment_id=gateway_payment_id, data={})

    def finalize_payment(self, gateway, payload: Mapping[str, Any],
                         headers: Optional[Mapping[str, str]] = None) -> WebhookResult:
        gateway_payment_id = str(payload.get("payment_id") or "").strip()
        if not gateway_payment_id:
            raise MalformedWebhook("Missing gateway_payment_id")

        status = str(payload.get("status") or "pending").strip().lower()

        paid_at = None
        if payload.get("paid_at"):
            paid_at = parse_datetime(str(payload["paid_at"]))
            if paid_at is not None and timezone.is_naive(paid_at):
                paid_at = timezone.make_aware(paid_at)

        notes = payload.get("notes")
        return WebhookResult(
            gateway_payment_id=gateway_payment_id,
            status=status,
            payment_date=paid_at,
            notes=str(notes) if notes is not None else None,
        )
