from .base import GatewayPlugin, InitResult, WebhookResult
from .registry import GatewayRegistry, registry

__all__ = [
    "GatewayPlugin",
    "InitResult",
    "WebhookResult",
    "GatewayRegistry",
    "registry",
]
