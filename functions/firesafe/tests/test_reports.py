import json
import time
import unittest

from fastapi.testclient import TestClient

from firesafe import reports
from firesafe.app import create_app
from firesafe.db import InMemoryDbClient
from firesafe.dependencies import get_db_client, get_event_bus
from firesafe.events import InMemoryEventBus
from shared.json_utils import to_iso


def make_house(db, **overrides):
    fields = {
        "user_id": "user-1",
        "owner_name": "Awa Diop",
        "property_type": "house",
        "city": "Dakar",
        "district": "Plateau",
        "neighborhood": "Medina",
        "street": "Rue 10",
        "parcel_number": "P-42",
        "phone": "+221770000000",
    }
    fields.update(overrides)
    return db.create_house(fields)


class GeneralReportTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_empty_period_has_zero_averages(self):
        data = reports.compute_general_report([], 0, "2025-01-01", "2025-01-31")
        self.assertEqual(data["trends"]["averageRoomsPerHouse"], 0)
        self.assertEqual(data["trends"]["averageSurfaceArea"], 0)
        self.assertEqual(data["summary"]["totalHouses"], 0)
        self.assertEqual(data["distributions"]["status"], {})
        self.assertEqual(data["sensitiveObjects"], [])

    def test_distributions_and_averages(self):
        houses = [
            make_house(
                self.db,
                city="Dakar",
                number_of_rooms=4,
                surface_area=120.0,
                plan_url="https://example.test/plan.png",
                plan_analysis=json.dumps({"overallRisk": "high"}),
                sensitive_objects=json.dumps(["gas", "fuel"]),
            ),
            make_house(
                self.db,
                city="Thies",
                property_type="apartment",
                status="approved",
                number_of_rooms=2,
                surface_area=60.0,
                plan_url="https://example.test/plan2.png",
                plan_analysis=json.dumps({"overall_risk_score": 7}),
                sensitive_objects=json.dumps(["gas"]),
            ),
            make_house(self.db, city="Dakar", sensitive_objects="not json"),
        ]

        data = reports.compute_general_report(houses, 5, "2025-01-01", "2025-01-31")

        self.assertEqual(
            data["summary"],
            {
                "totalHouses": 3,
                "totalUsers": 5,
                "housesWithPlans": 2,
                "housesWithAnalysis": 2,
                "periodStart": "2025-01-01",
                "periodEnd": "2025-01-31",
            },
        )
        self.assertEqual(data["distributions"]["status"], {"pending": 2, "approved": 1})
        self.assertEqual(data["distributions"]["propertyType"], {"house": 2, "apartment": 1})
        self.assertEqual(data["distributions"]["city"], {"Dakar": 2, "Thies": 1})
        self.assertEqual(data["distributions"]["riskLevel"], {"high": 1, "7": 1})
        self.assertEqual(
            data["sensitiveObjects"],
            [{"name": "gas", "count": 2}, {"name": "fuel", "count": 1}],
        )
        self.assertEqual(data["trends"]["averageRoomsPerHouse"], 2.0)
        self.assertEqual(data["trends"]["averageSurfaceArea"], 60.0)

    def test_top_ten_sensitive_objects(self):
        objects = [f"object-{i}" for i in range(12)]
        houses = [make_house(self.db, sensitive_objects=json.dumps(objects))]
        houses.append(make_house(self.db, sensitive_objects=json.dumps(["object-11"])))
        data = reports.compute_general_report(houses, 0, "a", "b")
        self.assertEqual(len(data["sensitiveObjects"]), 10)
        self.assertEqual(data["sensitiveObjects"][0], {"name": "object-11", "count": 2})

    def test_generate_report_filters_by_period(self):
        now = time.time()
        make_house(self.db, created_at=now - 3600)
        make_house(self.db, created_at=now - 10 * 24 * 3600)
        self.db.create_user({"email": "a@example.com"})

        report = reports.generate_report(
            self.db, "general", to_iso(now - 24 * 3600), to_iso(now)
        )

        self.assertEqual(report.report_type, "general")
        self.assertEqual(report.report_data["summary"]["totalHouses"], 1)
        self.assertEqual(report.report_data["summary"]["totalUsers"], 1)
        self.assertEqual(self.db.list_reports()[1], 1)


class ReportApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        self.bus = get_event_bus()
        if isinstance(self.bus, InMemoryEventBus):
            self.bus.reset()

    def generate(self, **body):
        payload = {
            "reportType": "general",
            "periodStart": "2025-01-01T00:00:00Z",
            "periodEnd": "2025-12-31T23:59:59Z",
        }
        payload.update(body)
        return self.client.post("/api/reports/generate", json=payload)

    def test_generate_and_list(self):
        response = self.generate()
        self.assertEqual(response.status_code, 201)
        report = response.json()["report"]
        self.assertTrue(response.json()["success"])
        self.assertEqual(report["report_type"], "general")
        self.assertEqual(report["report_data"]["trends"]["averageSurfaceArea"], 0)
        self.assertEqual(self.bus.published[-1].channel, "reports")

        listed = self.client.get("/api/admin/reports").json()
        self.assertEqual(listed["total"], 1)
        self.assertEqual(listed["reports"][0]["id"], report["id"])

    def test_unknown_report_type_is_rejected(self):
        response = self.generate(reportType="financial")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_REPORT_TYPE")
        self.assertEqual(self.db.list_reports()[1], 0)

    def test_period_validation(self):
        response = self.generate(periodEnd=None)
        self.assertEqual(response.json()["code"], "MISSING_REQUIRED_FIELD")

        response = self.generate(periodStart="last monday")
        self.assertEqual(response.json()["code"], "INVALID_PERIOD")

        response = self.generate(periodStart="2026-01-01", periodEnd="2025-01-01")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_PERIOD")


if __name__ == "__main__":
    unittest.main()
