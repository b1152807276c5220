import json
from decimal import Decimal

from django.test import TestCase

from stock.models import Ingredient, StockMovement
from stock.tests.base import ProcurementFixtures


class StockApiTests(ProcurementFixtures, TestCase):

    def post(self, url, data):
        return self.client.post(f"/api/stock/{url}", json.dumps(data), content_type="application/json")

    def put(self, url, data):
        return self.client.put(f"/api/stock/{url}", json.dumps(data), content_type="application/json")

    def get(self, url, **params):
        return self.client.get(f"/api/stock/{url}", params)

    def test_procure_to_pay_flow(self):
        response = self.post("intends/", {
            "vendor_id": self.vendor.id,
            "intend_date": "2026-10-18",
            "items": [
                {"ingredient_id": self.flour.id, "quantity": "5"},
                {"ingredient_id": self.sugar.id, "quantity": "2"},
            ],
        })
        self.assertEqual(response.status_code, 201)
        intend = response.json()["intend"]

        response = self.post("purchase-orders/generate-from-intend/", {
            "intend_id": intend["id"],
            "vendor_id": self.vendor.id,
            "items": [
                {"intend_item_id": intend["items"][0]["id"], "quantity": "5", "unit_price": "50"},
                {"intend_item_id": intend["items"][1]["id"], "quantity": "2", "unit_price": "40"},
            ],
        })
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["intend_status"], "fulfilled")
        po_id = body["po_id"]
        po_items = body["order"]["items"]

        response = self.post("grns/", {
            "po_id": po_id,
            "received_date": "2026-10-18",
            "items": [{"po_item_id": item["id"], "quantity_received": item["quantity_ordered"]} for item in po_items],
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["po_status"], "received")

        response = self.post("payments/", {
            "po_id": po_id, "amount": "331", "payment_method": "upi", "payment_date": "2026-10-18",
        })
        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "business_rule")
        self.assertEqual(error["details"]["rule"], "exceeds_outstanding")

        response = self.post("payments/", {
            "po_id": po_id, "amount": "330", "payment_method": "upi", "payment_date": "2026-10-18",
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["payment_status"], "paid")

        order = self.get(f"purchase-orders/{po_id}/").json()["order"]
        self.assertEqual(len(order["grns"]), 1)
        self.assertEqual(len(order["payments"]), 1)

    def test_adjust_and_movement_history(self):
        Ingredient.objects.filter(id=self.flour.id).update(stock_quantity=Decimal("100"))

        response = self.post("adjust/", {
            "adjustment_type": "physical_count",
            "items": [{"ingredient_id": self.flour.id, "system_quantity": "100", "actual_quantity": "92"}],
        })
        self.assertEqual(response.status_code, 201)

        history = self.get(f"movements/{self.flour.id}/").json()
        self.assertEqual(len(history["movements"]), 1)
        self.assertEqual(Decimal(history["movements"][0]["quantity"]), Decimal("-8"))
        self.assertEqual(Decimal(history["stock_quantity"]), Decimal("92"))

    def test_not_found(self):
        response = self.get("purchase-orders/999/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "not_found")

    def test_missing_field(self):
        response = self.post("payments/", {"amount": "10"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"]["field"], "po_id")

    def test_invalid_json(self):
        response = self.client.post("/api/stock/grns/", "{not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)

    def test_non_object_json_rejected(self):
        response = self.client.post("/api/stock/grns/", "[]", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "validation_error")
        self.assertEqual(error["details"]["field"], "body")

    def test_non_numeric_ingredient_id_rejected(self):
        po = self.create_po()

        response = self.post("grns/", {
            "po_id": po.id,
            "items": [{
                "po_item_id": self.po_item(po, self.flour).id,
                "ingredient_id": "flour",
                "quantity_received": "1",
            }],
        })

        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "validation_error")
        self.assertEqual(error["details"]["field"], "items[0].ingredient_id")

    def test_document_not_found(self):
        for url in ("grns/999/", "adjustments/999/"):
            response = self.get(url)

            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json()["error"]["code"], "not_found")

    def test_movements_by_reference(self):
        po = self.create_po()
        grn_id = self.receive_all(po)["grn_id"]

        response = self.get("movements/", reference_type="grn", reference_id=grn_id)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(
            {m["ingredient_id"] for m in body["movements"]}, {self.flour.id, self.sugar.id}
        )

        response = self.get("movements/", reference_type="grn")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"]["field"], "reference_id")

        response = self.get("movements/", reference_type="invoice", reference_id=grn_id)
        self.assertEqual(response.status_code, 400)

    def test_status_transition_rejected(self):
        po = self.create_po()

        response = self.put(f"purchase-orders/{po.id}/", {"status": "received"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"]["rule"], "po_status_transition")

    def test_consume_insufficient_stock(self):
        response = self.post("consume/", {"ingredient_id": self.flour.id, "quantity": "1"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "insufficient_stock")
        self.assertFalse(StockMovement.objects.exists())

    def test_settings_round_trip(self):
        response = self.put("settings/", {"allow_over_receipt": False})
        self.assertEqual(response.status_code, 200)

        settings = self.get("settings/").json()["settings"]
        self.assertFalse(settings["allow_over_receipt"])
