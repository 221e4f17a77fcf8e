"""
Registro de plugins de gateway.
Resolve a chave armazenada em Gateway.plugin para uma instância do plugin.
"""

from typing import Any, Dict, List, Mapping, Optional, Type
import inspect
import logging

from django.conf import settings
from django.utils.module_loading import import_string

from ..exceptions import GatewayConfigInvalid, GatewayNotImplemented
from .base import GatewayPlugin

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """
    Mapeia chaves estáveis (ex.: "fake", "mercadopago") para classes de plugin.

    As chaves vêm de uma allow-list confiável (settings.ORDERS_GATEWAY_PLUGINS
    ou register()); nunca de nomes de classe gravados no banco.
    """

    def __init__(self, plugins: Optional[Mapping[str, Any]] = None):
        self._declared: Dict[str, Any] = dict(plugins) if plugins is not None else None
        self._classes: Dict[str, Type[GatewayPlugin]] = {}
        self._instances: Dict[str, GatewayPlugin] = {}

    def _declared_plugins(self) -> Dict[str, Any]:
        if self._declared is None:
            return dict(getattr(settings, "ORDERS_GATEWAY_PLUGINS", {}))
        return self._declared

    def register(self, key: str, plugin_class: Type[GatewayPlugin]) -> None:
        self._check_class(key, plugin_class)
        self._classes[key] = plugin_class
        self._instances.pop(key, None)
        logger.info(f"Plugin de gateway {key} registrado ({plugin_class.__name__})")

    def unregister(self, key: str) -> bool:
        removed = self._classes.pop(key, None) is not None
        self._instances.pop(key, None)
        return removed

    def keys(self) -> List[str]:
        return sorted(set(self._declared_plugins()) | set(self._classes))

    def is_registered(self, key: str) -> bool:
        return key in self.keys()

    def get_class(self, key: str) -> Type[GatewayPlugin]:
        if key in self._classes:
            return self._classes[key]

        target = self._declared_plugins().get(key)
        if target is None:
            raise GatewayNotImplemented(f"Gateway plugin '{key}' is not registered.")

        if isinstance(target, str):
            try:
                target = import_string(target)
            except ImportError as e:
                logger.error(f"Falha ao carregar plugin de gateway {key}: {e}")
                raise GatewayNotImplemented(f"Gateway plugin '{key}' cannot be loaded.") from e

        self._check_class(key, target)
        self._classes[key] = target
        return target

    def resolve(self, gateway) -> GatewayPlugin:
        """
        Retorna o plugin concreto ligado à chave do gateway.

        Raises:
            GatewayNotImplemented: chave desconhecida ou classe fora do contrato.
        """
        key = gateway.plugin
        instance = self._instances.get(key)
        if instance is None:
            instance = self.get_class(key)()
            self._instances[key] = instance
        return instance

    def check_config(self, key: str, config: Any) -> None:
        """
        Valida a configuração com o plugin da chave informada.

        Raises:
            GatewayNotImplemented: chave desconhecida.
            GatewayConfigInvalid: configuração recusada pelo plugin.
        """
        plugin_class = self.get_class(key)
        if not isinstance(config, Mapping):
            raise GatewayConfigInvalid("config must be an object.")
        try:
            ok = plugin_class.check_config(config)
        except GatewayConfigInvalid:
            raise
        except (TypeError, ValueError, KeyError) as e:
            raise GatewayConfigInvalid(f"Invalid gateway config: {e}") from e
        if ok is not True:
            raise GatewayConfigInvalid()

    def describe(self) -> List[Dict[str, str]]:
        out = []
        for key in self.keys():
            try:
                plugin_class = self.get_class(key)
            except GatewayNotImplemented:
                continue
            out.append({"key": key, "label": plugin_class.label or plugin_class.__name__})
        return out

    @staticmethod
    def _check_class(key: str, plugin_class: Any) -> None:
        is_plugin = isinstance(plugin_class, type) and issubclass(plugin_class, GatewayPlugin)
        # subclasse com métodos abstratos pendentes não instancia
        if not is_plugin or inspect.isabstract(plugin_class):
            raise GatewayNotImplemented(
                f"Gateway plugin '{key}' does not implement the gateway contract."
            )


registry = GatewayRegistry()
