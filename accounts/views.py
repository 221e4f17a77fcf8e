# accounts/views.py: registro, login (e-mail + senha), me e refresh do token
import logging

from django.contrib.auth import authenticate, get_user_model
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .serializers import LoginSerializer, RegisterSerializer, UserSerializer
from .tokens import issue_token

logger = logging.getLogger(__name__)


@api_view(["POST"])
@permission_classes([AllowAny])
def register(request):
    ser = RegisterSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    user = ser.save()
    logger.info(f"Usuário {user.pk} registrado")
    return Response(issue_token(user), status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([AllowAny])
def login(request):
    ser = LoginSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    email = ser.validated_data["email"].strip().lower()

    account = get_user_model().objects.filter(email__iexact=email).first()
    user = None
    if account is not None:
        user = authenticate(request, username=account.get_username(), password=ser.validated_data["password"])
    if user is None:
        logger.info(f"Login recusado para {email}")
        raise AuthenticationFailed("Unauthorized")
    return Response(issue_token(user))


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me(request):
    return Response(UserSerializer(request.user).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def refresh(request):
    return Response(issue_token(request.user))
