"""
Erros de domínio do fluxo pedido/pagamento.

Todos são erros do cliente (4xx), exceto GatewayFailure, e o DRF os
renderiza como {"detail": "..."} com o status_code de cada classe.
"""

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError


class OrderFlowError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Request cannot be processed."
    default_code = "order_flow_error"


# --------- 404 (ausente ou de outro usuário) ---------
class OrderNotFound(OrderFlowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Order not found"
    default_code = "not_found"


class GatewayNotFound(OrderFlowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Gateway not found"
    default_code = "not_found"


class PaymentNotFound(OrderFlowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Payment not found for given gateway_payment_id."
    default_code = "payment_not_found"


# --------- 422 (regras de estado / integridade) ---------
class InvalidTransition(OrderFlowError):
    default_detail = "Transition not allowed for the current status."
    default_code = "invalid_transition"


class OrderNotPayable(OrderFlowError):
    default_detail = "Order must be confirmed before processing payment."
    default_code = "order_not_payable"


class UnknownItemReference(OrderFlowError):
    default_detail = "Invalid item id for this order"
    default_code = "unknown_item_reference"


class OrderHasPayment(OrderFlowError):
    default_detail = "Orders with payments cannot be deleted"
    default_code = "order_has_payment"


class GatewayHasPayments(OrderFlowError):
    default_detail = "Gateway cannot be deleted because it has payments."
    default_code = "gateway_has_payments"


class GatewayNotImplemented(OrderFlowError):
    default_detail = "Gateway plugin is not implemented."
    default_code = "gateway_not_implemented"


# --------- 400 ---------
class MalformedWebhook(OrderFlowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Missing gateway_payment_id"
    default_code = "malformed_webhook"


class GatewayConfigInvalid(ValidationError):
    default_detail = "Invalid gateway config."
    default_code = "gateway_config_invalid"


# --------- 502 ---------
class GatewayFailure(OrderFlowError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway call failed."
    default_code = "gateway_failure"
