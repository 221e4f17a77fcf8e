from datetime import datetime, timezone

from rest_framework import status
from rest_framework.test import APITestCase

from orders.models import Order, OrderItem

from .factories import make_gateway, make_order, make_payment, make_user


class OrderApiTestCase(APITestCase):

    def setUp(self):
        self.user = make_user()
        self.other = make_user("other@example.com")
        self.client.force_authenticate(user=self.user)

    def create_order(self, **overrides):
        body = {
            "order_date": "2025-12-05 10:00:00",
            "notes": "First order",
            "items": [
                {"product_name": "Widget", "quantity": 2, "price": 12.34, "notes": "Blue"},
                {"product_name": "Gadget", "quantity": 1, "price": 99.99},
            ],
        }
        body.update(overrides)
        return self.client.post("/api/orders/", body, format="json")


class CreateAndReadOrderTests(OrderApiTestCase):

    def test_create_order_computes_total(self):
        res = self.create_order()

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], Order.STATUS_PENDING)
        self.assertEqual(res.data["user_id"], self.user.pk)
        self.assertEqual(res.data["order_date"], "2025-12-05 10:00:00")
        self.assertEqual(res.data["total_price"], "124.670")
        self.assertEqual(len(res.data["items"]), 2)
        self.assertEqual(res.data["items"][0]["price"], "12.340")
        self.assertEqual(res.data["items"][0]["notes"], "Blue")

    def test_create_requires_at_least_one_item(self):
        res = self.create_order(items=[])

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("items", res.data)
        self.assertFalse(Order.objects.exists())

    def test_create_rejects_invalid_quantity_and_price(self):
        res = self.create_order(items=[{"product_name": "X", "quantity": 0, "price": -1}])

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)

        res = self.client.get("/api/orders/")

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_retrieve_other_users_order_is_not_found(self):
        foreign = make_order(self.other)

        res = self.client.get(f"/api/orders/{foreign.pk}/")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["detail"], "Order not found")


class ListOrdersTests(OrderApiTestCase):

    def test_list_is_paginated_scoped_and_newest_first(self):
        orders = [make_order(self.user) for _ in range(3)]
        make_order(self.other)

        res = self.client.get("/api/orders/", {"per_page": 2, "page": 1})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["meta"], {"current_page": 1, "per_page": 2, "total": 3, "last_page": 2})
        self.assertEqual([o["id"] for o in res.data["data"]], [orders[2].pk, orders[1].pk])

    def test_per_page_is_capped(self):
        make_order(self.user)

        res = self.client.get("/api/orders/", {"per_page": 500})

        self.assertEqual(res.data["meta"]["per_page"], 100)

    def test_filter_by_status(self):
        make_order(self.user)
        confirmed = make_order(self.user, status=Order.STATUS_CONFIRMED)

        res = self.client.get("/api/orders/", {"status": "confirmed"})

        self.assertEqual([o["id"] for o in res.data["data"]], [confirmed.pk])
        self.assertEqual(res.data["data"][0]["status"], Order.STATUS_CONFIRMED)

    def test_filter_by_date_range_is_inclusive(self):
        early = make_order(self.user, order_date=datetime(2025, 12, 1, 10, 0, tzinfo=timezone.utc))
        middle = make_order(self.user, order_date=datetime(2025, 12, 10, 23, 0, tzinfo=timezone.utc))
        make_order(self.user, order_date=datetime(2025, 12, 20, 10, 0, tzinfo=timezone.utc))

        res = self.client.get("/api/orders/", {"from": "2025-12-01", "to": "2025-12-10"})

        self.assertEqual([o["id"] for o in res.data["data"]], [middle.pk, early.pk])

    def test_invalid_status_filter_is_rejected(self):
        res = self.client.get("/api/orders/", {"status": "shipped"})

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)


class UpdateOrderTests(OrderApiTestCase):

    def test_update_reconciles_items(self):
        created = self.create_order().data
        first_id, second_id = created["items"][0]["id"], created["items"][1]["id"]

        res = self.client.put(f"/api/orders/{created['id']}/", {
            "order_date": "2025-12-07 10:00:00",
            "notes": "Updated notes",
            "items": [
                {"id": first_id, "product_name": "Widget", "quantity": 5, "price": 11.11},
                {"product_name": "Gizmo", "quantity": 1, "price": 3.33},
            ],
        }, format="json")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["order_date"], "2025-12-07 10:00:00")
        self.assertEqual(res.data["notes"], "Updated notes")
        items = res.data["items"]
        self.assertEqual(len(items), 2)
        self.assertEqual(items[0]["id"], first_id)
        self.assertEqual(items[0]["quantity"], 5)
        self.assertEqual(items[0]["price"], "11.110")
        self.assertEqual(items[1]["product_name"], "Gizmo")
        self.assertFalse(OrderItem.objects.filter(pk=second_id).exists())
        self.assertEqual(res.data["total_price"], "58.880")

    def test_patch_without_items_keeps_items(self):
        created = self.create_order().data

        res = self.client.patch(f"/api/orders/{created['id']}/", {"notes": None}, format="json")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIsNone(res.data["notes"])
        self.assertEqual(len(res.data["items"]), 2)

    def test_update_with_foreign_item_id_is_rejected(self):
        created = self.create_order().data
        foreign_item = make_order(self.other).items.get()

        res = self.client.put(f"/api/orders/{created['id']}/", {
            "items": [{"id": foreign_item.pk, "product_name": "X", "quantity": 1, "price": 2}],
        }, format="json")

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["detail"], "Invalid item id for this order")
        self.assertEqual(OrderItem.objects.filter(order_id=created["id"]).count(), 2)

    def test_update_with_duplicate_item_ids_is_rejected(self):
        created = self.create_order().data
        item_id = created["items"][0]["id"]
        line = {"id": item_id, "product_name": "X", "quantity": 1, "price": 1}

        res = self.client.put(f"/api/orders/{created['id']}/", {"items": [line, line]}, format="json")

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_pending_orders_can_be_updated(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)

        res = self.client.put(f"/api/orders/{order.pk}/", {"notes": "late"}, format="json")

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["detail"], "Only pending orders can be updated")

    def test_update_other_users_order_is_not_found(self):
        foreign = make_order(self.other)

        res = self.client.put(f"/api/orders/{foreign.pk}/", {"notes": "mine"}, format="json")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["detail"], "Order not found")


class TransitionTests(OrderApiTestCase):

    def test_confirm_pending_order(self):
        order = make_order(self.user)

        res = self.client.post(f"/api/orders/{order.pk}/confirm/")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], Order.STATUS_CONFIRMED)

    def test_cancel_pending_order(self):
        order = make_order(self.user)

        res = self.client.post(f"/api/orders/{order.pk}/cancel/")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], Order.STATUS_CANCELLED)

    def test_terminal_orders_do_not_transition(self):
        order = make_order(self.user, status=Order.STATUS_CANCELLED)

        confirm = self.client.post(f"/api/orders/{order.pk}/confirm/")
        cancel = self.client.post(f"/api/orders/{order.pk}/cancel/")

        self.assertEqual(confirm.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(confirm.data["detail"], "Only pending orders can be confirmed")
        self.assertEqual(cancel.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(cancel.data["detail"], "Only pending orders can be cancelled")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_CANCELLED)

    def test_cannot_confirm_other_users_order(self):
        foreign = make_order(self.other)

        res = self.client.post(f"/api/orders/{foreign.pk}/confirm/")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        foreign.refresh_from_db()
        self.assertEqual(foreign.status, Order.STATUS_PENDING)


class DeleteOrderTests(OrderApiTestCase):

    def test_delete_cascades_items(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED, items=[("A", 1, "1.000"), ("B", 1, "2.000")])

        res = self.client.delete(f"/api/orders/{order.pk}/")

        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Order.objects.filter(pk=order.pk).exists())
        self.assertFalse(OrderItem.objects.filter(order_id=order.pk).exists())

    def test_delete_order_with_payment_is_blocked(self):
        order = make_order(self.user, status=Order.STATUS_CONFIRMED)
        make_payment(order, make_gateway())

        res = self.client.delete(f"/api/orders/{order.pk}/")

        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(res.data["detail"], "Orders with payments cannot be deleted")
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())

    def test_delete_other_users_order_is_not_found(self):
        foreign = make_order(self.other)

        res = self.client.delete(f"/api/orders/{foreign.pk}/")

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Order.objects.filter(pk=foreign.pk).exists())
