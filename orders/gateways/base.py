"""
Classe base abstrata para plugins de gateway de pagamento.
Define o contrato que todo provedor precisa implementar: validação da
configuração, início do pagamento e normalização do webhook.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class InitResult:
    """Resposta do gateway ao iniciar um pagamento"""
    gateway_payment_id: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookResult:
    """Notificação do gateway já normalizada para o vocabulário interno"""
    gateway_payment_id: str
    status: str
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class GatewayPlugin(ABC):
    """
    Contrato de um provedor de pagamento.

    Os plugins não guardam estado: toda configuração chega pelo registro
    Gateway (gateway.config) em cada chamada.
    """

    #: nome amigável exibido em /api/gateways/plugins/ e no admin
    label: str = ""

    @classmethod
    @abstractmethod
    def check_config(cls, config: Mapping[str, Any]) -> bool:
        """
        Valida a configuração armazenada do gateway.

        Returns:
            bool: True se válida. Pode levantar GatewayConfigInvalid com
            uma mensagem descritiva em vez de retornar False.
        """

    @abstractmethod
    def init_payment(self, order, gateway, payment) -> InitResult:
        """
        Inicia o pagamento no provedor.

        Chamado uma vez por Payment, depois de a linha PENDING existir e antes
        do commit. Qualquer exceção aborta a transação inteira.
        """

    @abstractmethod
    def finalize_payment(self, gateway, payload: Mapping[str, Any],
                         headers: Optional[Mapping[str, str]] = None) -> WebhookResult:
        """
        Normaliza uma notificação assíncrona do provedor.

        Raises:
            MalformedWebhook: quando o payload não traz o id externo.
        """
