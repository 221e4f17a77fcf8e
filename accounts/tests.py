from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from .tokens import decode_token, issue_token

PASSWORD = "s3cure-Passw0rd!"


class RegisterTests(APITestCase):

    def test_register_returns_token(self):
        res = self.client.post("/api/auth/register/", {
            "name": "Ana", "email": "Ana@Example.com", "password": PASSWORD,
        }, format="json")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["token_type"], "bearer")
        self.assertEqual(res.data["expires_in"], settings.JWT_TTL_MINUTES * 60)
        user = get_user_model().objects.get(email="ana@example.com")
        self.assertTrue(user.check_password(PASSWORD))
        self.assertEqual(decode_token(res.data["access_token"])["sub"], str(user.pk))

    def test_duplicate_email_is_rejected(self):
        get_user_model().objects.create_user(username="ana@example.com", email="ana@example.com", password=PASSWORD)

        res = self.client.post("/api/auth/register/", {
            "name": "Ana", "email": "ana@example.com", "password": PASSWORD,
        }, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", res.data)

    def test_missing_fields(self):
        res = self.client.post("/api/auth/register/", {}, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(set(res.data), {"name", "email", "password"})

    def test_weak_password_is_rejected(self):
        res = self.client.post("/api/auth/register/", {
            "name": "Ana", "email": "ana@example.com", "password": "12345678",
        }, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", res.data)


class LoginTests(APITestCase):

    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="ana@example.com", email="ana@example.com", password=PASSWORD, first_name="Ana",
        )

    def login(self, password=PASSWORD, email="ana@example.com"):
        return self.client.post("/api/auth/login/", {"email": email, "password": password}, format="json")

    def test_login_and_use_token(self):
        res = self.login()

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        token = res.data["access_token"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        me = self.client.get("/api/auth/me/")
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["email"], "ana@example.com")
        self.assertEqual(me.data["name"], "Ana")

    def test_wrong_password(self):
        res = self.login(password="nope")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(res.data["detail"], "Unauthorized")

    def test_unknown_email(self):
        res = self.login(email="ghost@example.com")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_issues_new_token(self):
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {self.login().data['access_token']}")

        res = self.client.post("/api/auth/refresh/")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(decode_token(res.data["access_token"])["sub"], str(self.user.pk))

    def test_me_requires_token(self):
        self.assertEqual(self.client.get("/api/auth/me/").status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(self.client.post("/api/auth/refresh/").status_code, status.HTTP_401_UNAUTHORIZED)


class JWTAuthenticationTests(APITestCase):

    def setUp(self):
        self.user = get_user_model().objects.create_user(username="ana@example.com", email="ana@example.com", password=PASSWORD)

    def test_garbage_token_is_rejected(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")

        res = self.client.get("/api/orders/")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_signed_with_other_secret_is_rejected(self):
        forged = jwt.encode({"sub": str(self.user.pk), "exp": 4102444800}, "other-secret", algorithm="HS256")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {forged}")

        res = self.client.get("/api/orders/")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_expired_token_is_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        with patch("accounts.tokens.datetime") as mock_dt:
            mock_dt.now.return_value = past
            token = issue_token(self.user)["access_token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        res = self.client.get("/api/orders/")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(res.data["detail"], "Token has expired.")

    def test_inactive_user_is_rejected(self):
        token = issue_token(self.user)["access_token"]
        self.user.is_active = False
        self.user.save()
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        self.assertEqual(self.client.get("/api/orders/").status_code, status.HTTP_401_UNAUTHORIZED)

    @override_settings(JWT_TTL_MINUTES=5)
    def test_ttl_comes_from_settings(self):
        self.assertEqual(issue_token(self.user)["expires_in"], 300)
