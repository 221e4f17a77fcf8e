# accounts/tokens.py: emissão/validação do JWT de acesso (PyJWT, HS256)
from datetime import datetime, timedelta, timezone
import logging

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)


def _secret() -> str:
    return getattr(settings, "JWT_SECRET", None) or settings.SECRET_KEY


def _algorithm() -> str:
    return getattr(settings, "JWT_ALGORITHM", "HS256")


def token_ttl_seconds() -> int:
    return int(getattr(settings, "JWT_TTL_MINUTES", 60)) * 60


def issue_token(user) -> dict:
    """
    Gera o token de acesso do usuário no formato devolvido pela API:
    {"access_token", "token_type", "expires_in"}.
    """
    now = datetime.now(timezone.utc)
    ttl = token_ttl_seconds()
    payload = {
        "sub": str(user.pk),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
    }
    token = jwt.encode(payload, _secret(), algorithm=_algorithm())
    return {"access_token": token, "token_type": "bearer", "expires_in": ttl}


def decode_token(token: str) -> dict:
    """
    Raises:
        jwt.InvalidTokenError: assinatura inválida, expirado ou malformado.
    """
    return jwt.decode(token, _secret(), algorithms=[_algorithm()], options={"require": ["sub", "exp"]})
