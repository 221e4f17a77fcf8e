"""
Plugin Mercado Pago (Checkout Pro).

O id de pagamento do Mercado Pago só existe depois que o comprador paga, então
a correlação é feita pelo external_reference: init_payment grava
"orderdesk-<payment id>" na preferência e finalize_payment lê esse valor de
volta ao consultar o pagamento notificado.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Optional
import logging

import mercadopago
import requests
from django.utils.dateparse import parse_datetime

from ..exceptions import GatewayConfigInvalid, MalformedWebhook
from .base import GatewayPlugin, InitResult, WebhookResult

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "orderdesk-"

# status do Mercado Pago -> vocabulário interno
STATUS_MAP = {
    "approved": "successful",
    "rejected": "failed",
    "cancelled": "canceled",
    "refunded": "canceled",
    "charged_back": "canceled",
}


class MercadoPagoError(Exception):
    pass


def _amount(value) -> float:
    v = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(v)


class MercadoPagoGateway(GatewayPlugin):
    label = "Mercado Pago (Checkout Pro)"

    @classmethod
    def check_config(cls, config: Mapping[str, Any]) -> bool:
        token = config.get("access_token")
        if not isinstance(token, str) or not token.strip():
            raise GatewayConfigInvalid("Invalid gateway config: access_token is required.")

        url = config.get("notification_url")
        if url is not None and not (isinstance(url, str) and url.startswith("https://")):
            raise GatewayConfigInvalid("Invalid gateway config: notification_url must be an https URL.")

        currency = config.get("currency", "BRL")
        if not isinstance(currency, str) or len(currency) != 3:
            raise GatewayConfigInvalid("Invalid gateway config: currency must be a 3-letter code.")
        return True

    def _sdk(self, gateway):
        return mercadopago.SDK(gateway.config["access_token"])

    def init_payment(self, order, gateway, payment) -> InitResult:
        config = gateway.config or {}
        reference = f"{REFERENCE_PREFIX}{payment.pk}"

        body: Dict[str, Any] = {
            "items": [
                {
                    "id": str(item.pk),
                    "title": item.product_name,
                    "quantity": int(item.quantity),
                    "unit_price": _amount(item.price),
                    "currency_id": config.get("currency", "BRL"),
                }
                for item in order.items.all()
            ],
            "external_reference": reference,
        }
        if config.get("notification_url"):
            body["notification_url"] = config["notification_url"]
        if config.get("statement_descriptor"):
            body["statement_descriptor"] = config["statement_descriptor"]

        try:
            result = self._sdk(gateway).preference().create(body)
        except requests.RequestException as e:
            raise MercadoPagoError(f"Falha de comunicação com o Mercado Pago: {e}") from e

        resp = result.get("response") or {}
        if result.get("status") not in (200, 201) or not resp.get("id"):
            raise MercadoPagoError(f"Preferência recusada (HTTP {result.get('status')}): {resp}")

        logger.info(f"Mercado Pago: preferência {resp['id']} criada para o pagamento {payment.pk}")
        return InitResult(
            gateway_payment_id=reference,
            data={"preference_id": resp["id"], "init_point": resp.get("init_point", "")},
        )

    def finalize_payment(self, gateway, payload: Mapping[str, Any],
                         headers: Optional[Mapping[str, str]] = None) -> WebhookResult:
        typ = str(payload.get("type") or payload.get("topic") or "").lower()
        data = payload.get("data")
        # JSON traz data.id aninhado; query string e form trazem "data.id" achatado
        data_id = data.get("id") if isinstance(data, Mapping) else payload.get("data.id")
        data_id = str(data_id or "").strip()
        if not data_id and typ == "payment":
            data_id = str(payload.get("id") or "").strip()
        if typ != "payment" or not data_id:
            raise MalformedWebhook("Missing gateway_payment_id")

        try:
            result = self._sdk(gateway).payment().get(data_id)
        except requests.RequestException as e:
            raise MercadoPagoError(f"Falha ao consultar pagamento {data_id}: {e}") from e

        result = result or {}
        presp = result.get("response") or {}
        if result.get("status") != 200:
            raise MercadoPagoError(f"Consulta do pagamento {data_id} falhou (HTTP {result.get('status')})")

        reference = str(presp.get("external_reference") or "").strip()
        if not reference:
            raise MalformedWebhook("Missing gateway_payment_id")

        mp_status = str(presp.get("status") or "").lower()
        status = STATUS_MAP.get(mp_status, "pending")

        paid_at = None
        if presp.get("date_approved"):
            paid_at = parse_datetime(str(presp["date_approved"]))

        detail = presp.get("status_detail") or mp_status
        return WebhookResult(
            gateway_payment_id=reference,
            status=status,
            payment_date=paid_at,
            notes=f"Mercado Pago payment {data_id}: {detail}",
        )
