import unittest
from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient

from finance_api.errors import StoreUnavailable
from finance_api.main import app, get_report_service, get_transaction_store
from finance_api.report_service import ReportService
from finance_api.tests.helpers import memory_store


class UnavailableStore:
    def query_by_date_range(self, start, end):
        raise StoreUnavailable("Transaction store unavailable.")


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = memory_store()
        app.dependency_overrides[get_transaction_store] = lambda: self.store
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def create(self, **overrides) -> dict:
        payload = {
            "type": "expense",
            "amount": 1500,
            "currency": "ARS",
            "description": "Coffee",
            "category": "food",
            "date": "2024-06-10",
        }
        payload.update(overrides)
        response = self.client.post("/api/v1/transactions", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()


class HealthTests(ApiTestCase):
    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["service"], "personal-finance-api")


class TransactionApiTests(ApiTestCase):
    def test_create_and_fetch(self) -> None:
        created = self.create()

        self.assertEqual(created["id"], 1)
        self.assertEqual(created["type"], "expense")
        self.assertEqual(Decimal(str(created["amount"])), Decimal("1500"))

        response = self.client.get(f"/api/v1/transactions/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["description"], "Coffee")

    def test_create_uses_default_currency(self) -> None:
        created = self.create(currency=None)

        self.assertEqual(len(created["currency"]), 3)

    def test_create_rejects_invalid_payload(self) -> None:
        response = self.client.post(
            "/api/v1/transactions",
            json={
                "type": "expense",
                "amount": -3,
                "description": "Coffee",
                "category": "food",
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("greater than zero", response.json()["detail"])

    def test_create_rejects_amounts_outside_column_precision(self) -> None:
        for amount in ("0.004", "12345678901.00"):
            with self.subTest(amount=amount):
                response = self.client.post(
                    "/api/v1/transactions",
                    json={
                        "type": "expense",
                        "amount": amount,
                        "description": "Coffee",
                        "category": "food",
                    },
                )
                self.assertEqual(response.status_code, 400, response.text)
        self.assertEqual(self.client.get("/api/v1/transactions").json(), [])

    def test_update_rejects_amounts_outside_column_precision(self) -> None:
        created = self.create()

        response = self.client.put(
            f"/api/v1/transactions/{created['id']}", json={"amount": "0.004"}
        )

        self.assertEqual(response.status_code, 400, response.text)
        fetched = self.client.get(f"/api/v1/transactions/{created['id']}").json()
        self.assertEqual(Decimal(fetched["amount"]), Decimal("1500"))

    def test_create_requires_fields(self) -> None:
        response = self.client.post("/api/v1/transactions", json={"type": "expense"})

        self.assertEqual(response.status_code, 422)

    def test_list_with_filters(self) -> None:
        self.create(category="food")
        rent = self.create(category="rent", date="2024-06-12")
        self.create(type="income", category="salary")

        response = self.client.get(
            "/api/v1/transactions",
            params={"type": "expense", "from_date": "2024-06-11", "to_date": "2024-06-30"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([txn["id"] for txn in response.json()], [rent["id"]])

    def test_list_rejects_unknown_type(self) -> None:
        response = self.client.get("/api/v1/transactions", params={"type": "transfer"})

        self.assertEqual(response.status_code, 400)

    def test_update(self) -> None:
        created = self.create()

        response = self.client.put(
            f"/api/v1/transactions/{created['id']}",
            json={"amount": 2500, "category": "dining"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(Decimal(str(body["amount"])), Decimal("2500"))
        self.assertEqual(body["category"], "dining")
        self.assertEqual(body["description"], "Coffee")

    def test_update_missing(self) -> None:
        response = self.client.put("/api/v1/transactions/99", json={"amount": 10})

        self.assertEqual(response.status_code, 404)

    def test_delete(self) -> None:
        created = self.create()

        response = self.client.delete(f"/api/v1/transactions/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Transaction deleted successfully"})

        self.assertEqual(self.client.get(f"/api/v1/transactions/{created['id']}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/v1/transactions/{created['id']}").status_code, 404)

    def test_invalid_id(self) -> None:
        self.assertEqual(self.client.get("/api/v1/transactions/0").status_code, 400)
        self.assertEqual(self.client.get("/api/v1/transactions/abc").status_code, 422)


class ReportApiTests(ApiTestCase):
    def test_monthly_report(self) -> None:
        self.create(type="income", amount=100000, currency="ARS", category="salary", date="2024-06-01")
        self.create(type="expense", amount=25000, currency="ARS", category="food", date="2024-06-15")
        self.create(type="expense", amount=200, currency="USD", category="travel", date="2024-06-30")
        self.create(type="expense", amount=999, currency="USD", category="travel", date="2024-07-01")

        response = self.client.get("/api/v1/reports/monthly/2024/6")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["month_label"], "June")
        self.assertEqual(body["year"], 2024)
        for key in ("total_income", "total_expense", "balance"):
            for value in body[key].values():
                self.assertIsInstance(value, str)
        self.assertEqual(
            {k: Decimal(str(v)) for k, v in body["total_income"].items()},
            {"ARS": Decimal("100000")},
        )
        self.assertEqual(
            {k: Decimal(str(v)) for k, v in body["total_expense"].items()},
            {"ARS": Decimal("25000"), "USD": Decimal("200")},
        )
        self.assertEqual(
            {k: Decimal(str(v)) for k, v in body["balance"].items()},
            {"ARS": Decimal("75000"), "USD": Decimal("-200")},
        )
        self.assertEqual(body["summary"]["transaction_count"], 3)
        self.assertEqual(body["summary"]["income_count"], 1)
        self.assertEqual(body["summary"]["expense_count"], 2)
        self.assertEqual(body["summary"]["category_breakdown"]["travel"]["count"], 1)
        self.assertEqual([txn["id"] for txn in body["transactions"]], [1, 2, 3])

    def test_empty_month(self) -> None:
        response = self.client.get("/api/v1/reports/monthly/2024/12")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["month_label"], "December")
        self.assertEqual(body["total_income"], {})
        self.assertEqual(body["balance"], {})
        self.assertEqual(body["transactions"], [])
        self.assertEqual(body["summary"]["transaction_count"], 0)
        self.assertEqual(body["summary"]["category_breakdown"], {})

    def test_invalid_year_and_month(self) -> None:
        year_response = self.client.get("/api/v1/reports/monthly/1800/6")
        month_response = self.client.get("/api/v1/reports/monthly/2024/13")

        self.assertEqual(year_response.status_code, 400)
        self.assertIn("Year", year_response.json()["detail"])
        self.assertEqual(month_response.status_code, 400)
        self.assertIn("Month", month_response.json()["detail"])

    def test_store_unavailable(self) -> None:
        app.dependency_overrides[get_report_service] = lambda: ReportService(UnavailableStore())

        response = self.client.get("/api/v1/reports/monthly/2024/6")

        self.assertEqual(response.status_code, 503)

    def test_current_month(self) -> None:
        self.create(type="income", amount=10, currency="EUR", category="gift", date="2024-03-05")
        clock = lambda: datetime(2024, 3, 20, tzinfo=timezone.utc)
        app.dependency_overrides[get_report_service] = lambda: ReportService(self.store, clock=clock)

        response = self.client.get("/api/v1/reports/current-month")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["month_label"], "March")
        self.assertEqual(body["year"], 2024)
        self.assertEqual(body["summary"]["income_count"], 1)


if __name__ == "__main__":
    unittest.main()
