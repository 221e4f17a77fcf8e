"""
Coordenador de transações.

Agrupa gravações de várias linhas (pedido + itens, pagamento + chamada ao
gateway) em uma unidade atômica e traduz violações de unicidade do banco em
erros de domínio.
"""

from contextlib import contextmanager
from typing import Callable, Optional, Union
import logging

from django.db import IntegrityError, transaction

logger = logging.getLogger(__name__)

IntegrityHandler = Union[Exception, Callable[[IntegrityError], Exception]]


class TransactionCoordinator:

    def __init__(self, using: Optional[str] = None):
        self.using = using

    @contextmanager
    def atomic(self, on_integrity_error: Optional[IntegrityHandler] = None):
        """
        Abre uma transação: ou tudo dentro do bloco é gravado, ou nada.

        Args:
            on_integrity_error: exceção (ou função que recebe o IntegrityError
                e devolve uma exceção) levantada no lugar do IntegrityError,
                depois do rollback.
        """
        try:
            with transaction.atomic(using=self.using):
                yield
        except IntegrityError as e:
            logger.warning(f"Conflito de integridade, transação desfeita: {e}")
            if on_integrity_error is None:
                raise
            error = on_integrity_error(e) if callable(on_integrity_error) else on_integrity_error
            raise error from e
