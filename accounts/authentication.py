# accounts/authentication.py: autenticação DRF por "Authorization: Bearer <jwt>"
import logging

import jwt
from django.contrib.auth import get_user_model
from rest_framework import authentication, exceptions

from .tokens import decode_token

logger = logging.getLogger(__name__)


class JWTAuthentication(authentication.BaseAuthentication):
    keyword = "Bearer"

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None
        if len(header) != 2:
            raise exceptions.AuthenticationFailed("Invalid token header.")

        try:
            token = header[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed("Invalid token header.")

        try:
            payload = decode_token(token)
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed("Token has expired.")
        except jwt.InvalidTokenError as e:
            logger.info(f"Token JWT recusado: {e}")
            raise exceptions.AuthenticationFailed("Invalid token.")

        user = get_user_model().objects.filter(pk=payload["sub"], is_active=True).first()
        if user is None:
            raise exceptions.AuthenticationFailed("User not found.")
        return (user, payload)

    def authenticate_header(self, request):
        # faz o DRF responder 401 (e não 403) sem credenciais
        return f'{self.keyword} realm="api"'
