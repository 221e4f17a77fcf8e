from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from orders.exceptions import GatewayFailure, OrderNotPayable
from orders.gateways.base import InitResult, WebhookResult
from orders.gateways.fake import FakeGateway
from orders.models import Order, Payment
from orders.services import PaymentLifecycle

from .factories import make_gateway, make_order, make_payment, make_user


class PaymentApiTestCase(APITestCase):

    def setUp(self):
        self.user = make_user()
        self.other = make_user("other@example.com")
        self.gateway = make_gateway()
        self.client.force_authenticate(user=self.user)

    def process(self, order, **body):
        body.setdefault("gateway_id", self.gateway.pk)
        return self.client.post(f"/api/orders/{order.pk}/payments/process/", body, format="json")

    def webhook(self, payload, gateway=None):
        gateway = gateway or self.gateway
        return self.client.post(f"/api/payments/webhook/{gateway.pk}/", payload, format="json")


class ProcessPaymentTests(PaymentApiTestCase):

    def test_process_confirmed_order_creates_pending_payment(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)

        res = self.process(order, payment_method="card", notes="first try")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["message"], "Payment initialized.")
        data = res.data["data"]
        self.assertEqual(data["order_id"], order.pk)
        self.assertEqual(data["gateway_id"], self.gateway.pk)
        self.assertEqual(data["status"], Payment.STATUS_PENDING)
        self.assertTrue(data["gateway_payment_id"].startswith("fake_"))
        self.assertIsNotNone(data["payment_date"])

        payment = Payment.objects.get(pk=data["id"])
        self.assertEqual(payment.gateway_payment_id, data["gateway_payment_id"])
        self.assertEqual(payment.payment_method, "card")

    def test_pending_order_is_not_payable(self):
        order = make_order(self.user)

        res = self.process(order)

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["detail"], "Order must be confirmed before processing payment.")
        self.assertFalse(Payment.objects.exists())

    def test_second_process_is_rejected(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        self.assertEqual(self.process(order).status_code, status.HTTP_201_CREATED)

        res = self.process(order)

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["detail"], "Order already has a payment.")
        self.assertEqual(Payment.objects.filter(order=order).count(), 1)

    def test_plugin_failure_rolls_back(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)

        with patch.object(FakeGateway, "init_payment", side_effect=RuntimeError("provider down")):
            res = self.process(order)

        self.assertEqual(res.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(res.data["detail"], "Payment gateway call failed.")
        self.assertFalse(Payment.objects.exists())

    def test_unknown_gateway_is_validation_error(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)

        res = self.process(order, gateway_id=9999)

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("gateway_id", res.data)

    def test_unregistered_plugin_is_not_implemented(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        legacy = make_gateway(plugin="legacy", name="Legacy")

        res = self.process(order, gateway_id=legacy.pk)

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(Payment.objects.exists())

    @override_settings(ORDERS_GATEWAY_PLUGINS={"partial": "orders.gateways.base.GatewayPlugin"})
    def test_plugin_with_abstract_methods_is_not_implemented(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        partial = make_gateway(plugin="partial", name="Partial")

        res = self.process(order, gateway_id=partial.pk)

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(Payment.objects.exists())

    def test_other_users_order_is_not_found(self):
        order = make_order(self.other, status=Order.STATUS_CONFIRMED)

        res = self.process(order)

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Payment.objects.exists())


class WebhookTests(PaymentApiTestCase):

    def setUp(self):
        super().setUp()
        self.order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        self.payment = make_payment(self.order, self.gateway, gateway_payment_id="fake_abc")
        self.client.force_authenticate(user=None)

    def test_webhook_marks_payment_successful(self):
        res = self.webhook({"payment_id": "fake_abc", "status": "successful", "notes": "paid"})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["message"], "Webhook processed.")
        self.assertEqual(res.data["data"]["id"], self.payment.pk)
        self.assertEqual(res.data["data"]["status"], Payment.STATUS_SUCCESSFUL)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_SUCCESSFUL)
        self.assertEqual(self.payment.notes, "paid")

    def test_repeated_webhook_is_idempotent(self):
        payload = {"payment_id": "fake_abc", "status": "successful", "paid_at": "2025-12-05 10:00:00"}

        first = self.webhook(payload)
        second = self.webhook(payload)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data["data"]["status"], Payment.STATUS_SUCCESSFUL)
        self.assertEqual(second.data["data"]["payment_date"], "2025-12-05 10:00:00")
        self.assertEqual(Payment.objects.count(), 1)

    def test_notes_default_to_existing(self):
        self.payment.notes = "kept"
        self.payment.save()

        self.webhook({"payment_id": "fake_abc", "status": "failed"})

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_FAILED)
        self.assertEqual(self.payment.notes, "kept")

    def test_finalized_payment_status_is_overwritten(self):
        self.webhook({"payment_id": "fake_abc", "status": "successful"})

        res = self.webhook({"payment_id": "fake_abc", "status": "canceled", "notes": "refunded"})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["data"]["status"], Payment.STATUS_CANCELED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_CANCELED)
        self.assertEqual(self.payment.notes, "refunded")

    def test_unknown_payment_id_is_not_found(self):
        res = self.webhook({"payment_id": "fake_missing", "status": "successful"})

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["detail"], "Payment not found for given gateway_payment_id.")

    def test_payment_id_is_scoped_to_gateway(self):
        other_gateway = make_gateway(name="Fake 2")

        res = self.webhook({"payment_id": "fake_abc", "status": "successful"}, gateway=other_gateway)

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_missing_payment_id_is_malformed(self):
        res = self.webhook({"status": "successful"})

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["detail"], "Missing gateway_payment_id")

    def test_unknown_status_is_malformed(self):
        res = self.webhook({"payment_id": "fake_abc", "status": "chargeback_pending"})

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_unknown_gateway_is_not_found(self):
        res = self.client.post("/api/payments/webhook/9999/", {"payment_id": "fake_abc"}, format="json")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["detail"], "Gateway not found")

    def test_plugin_error_while_finalizing_is_gateway_failure(self):
        with patch.object(FakeGateway, "finalize_payment", side_effect=ValueError("bad signature")):
            res = self.webhook({"payment_id": "fake_abc", "status": "successful"})

        self.assertEqual(res.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_plugin_status_is_normalized(self):
        result = WebhookResult(gateway_payment_id="fake_abc", status=" Canceled ")
        with patch.object(FakeGateway, "finalize_payment", return_value=result):
            res = self.webhook({})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["data"]["status"], Payment.STATUS_CANCELED)


class ListPaymentsTests(PaymentApiTestCase):

    def test_list_is_scoped_and_filterable(self):
        order_a = make_order(self.user, status=Order.STATUS_CONFIRMED)
        order_b = make_order(self.user, status=Order.STATUS_CONFIRMED)
        foreign = make_order(self.other, status=Order.STATUS_CONFIRMED)
        pay_a = make_payment(order_a, self.gateway, "fake_a")
        make_payment(order_b, self.gateway, "fake_b")
        make_payment(foreign, self.gateway, "fake_c")

        everything = self.client.get("/api/payments/")
        filtered = self.client.get("/api/payments/", {"order_id": order_a.pk})

        self.assertEqual(everything.status_code, status.HTTP_200_OK)
        self.assertEqual(everything.data["meta"]["total"], 2)
        self.assertEqual([p["id"] for p in filtered.data["data"]], [pay_a.pk])

    def test_retrieve_foreign_payment_is_not_found(self):
        foreign = make_payment(make_order(self.other, status=Order.STATUS_CONFIRMED), self.gateway)

        res = self.client.get(f"/api/payments/{foreign.pk}/")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)


class PaymentConstraintTests(PaymentApiTestCase):

    def test_gateway_payment_id_is_unique_per_gateway(self):
        make_payment(make_order(self.user, status=Order.STATUS_CONFIRMED), self.gateway, "fake_dup")

        with self.assertRaises(IntegrityError), transaction.atomic():
            make_payment(make_order(self.user, status=Order.STATUS_CONFIRMED), self.gateway, "fake_dup")

    def test_one_payment_per_order(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        make_payment(order, self.gateway, "fake_1")

        with self.assertRaises(IntegrityError), transaction.atomic():
            make_payment(order, self.gateway, "fake_2")


class PaymentCreationConflictTests(PaymentApiTestCase):

    def test_race_loser_gets_already_has_payment(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        make_payment(order, self.gateway, "fake_winner")

        # a checagem passou antes do vencedor gravar; só o banco barra
        with patch("orders.services.payment_lifecycle.ensure_payable"), \
                self.assertRaises(OrderNotPayable) as ctx:
            PaymentLifecycle().create(self.user, order.pk, self.gateway.pk)

        self.assertEqual(ctx.exception.detail, "Order already has a payment.")
        self.assertEqual(Payment.objects.filter(order=order).count(), 1)
        self.assertEqual(Payment.objects.get(order=order).gateway_payment_id, "fake_winner")

    def test_duplicate_external_id_is_gateway_failure(self):
        make_payment(make_order(self.user, status=Order.STATUS_CONFIRMED), self.gateway, "fake_dup")
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)

        with patch.object(FakeGateway, "init_payment", return_value=InitResult(gateway_payment_id="fake_dup")), \
                self.assertRaises(GatewayFailure):
            PaymentLifecycle().create(self.user, order.pk, self.gateway.pk)

        self.assertFalse(Payment.objects.filter(order=order).exists())
        self.assertEqual(Payment.objects.count(), 1)
