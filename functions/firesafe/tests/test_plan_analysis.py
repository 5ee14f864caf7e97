import json
import unittest
from unittest.mock import MagicMock, patch

import requests
from fastapi.testclient import TestClient

from firesafe import plan_analysis
from firesafe.app import create_app
from firesafe.config import Settings, get_settings
from firesafe.db import InMemoryDbClient
from firesafe.dependencies import get_db_client, get_storage_client
from firesafe.errors import UpstreamError
from firesafe.storage import InMemoryStorageClient
from models import gemini
from shared.types import AnalysisMode, DownloadSource

PLAN_PATH = "house-plans/user-1/plan.png"


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


class MergeAnalysisTests(unittest.TestCase):
    def test_preventive_keeps_previous_operational_report(self):
        merged = plan_analysis.merge_analysis(
            {"summary": "A", "operational_report": {"x": 1}},
            {"summary": "B"},
            AnalysisMode.PREVENTIVE,
        )
        self.assertEqual(merged, {"summary": "B", "operational_report": {"x": 1}})

    def test_operational_nests_next_to_preventive(self):
        merged = plan_analysis.merge_analysis(
            {"summary": "A"}, {"operational_summary": "C"}, AnalysisMode.OPERATIONAL
        )
        self.assertEqual(
            merged, {"summary": "A", "operational_report": {"operational_summary": "C"}}
        )

    def test_operational_replaces_previous_operational_report(self):
        merged = plan_analysis.merge_analysis(
            {"summary": "A", "operational_report": {"operational_summary": "old"}},
            {"operational_summary": "new"},
            AnalysisMode.OPERATIONAL,
        )
        self.assertEqual(merged["operational_report"], {"operational_summary": "new"})
        self.assertEqual(merged["summary"], "A")

    def test_without_previous_analysis(self):
        self.assertEqual(
            plan_analysis.merge_analysis(None, {"summary": "B"}, AnalysisMode.PREVENTIVE),
            {"summary": "B"},
        )
        self.assertEqual(
            plan_analysis.merge_analysis(
                None, {"operational_summary": "C"}, AnalysisMode.OPERATIONAL
            ),
            {"operational_report": {"operational_summary": "C"}},
        )

    def test_preventive_without_previous_report_has_none(self):
        merged = plan_analysis.merge_analysis(
            {"summary": "A"}, {"summary": "B"}, AnalysisMode.PREVENTIVE
        )
        self.assertEqual(merged, {"summary": "B"})


class ParseAnalysisTests(unittest.TestCase):
    def test_strips_code_fences(self):
        text = '```json\n{"summary": "ok", "overall_risk_score": 4}\n```'
        self.assertEqual(
            plan_analysis.parse_analysis(text), {"summary": "ok", "overall_risk_score": 4}
        )

    def test_unparseable_output_becomes_stub(self):
        parsed = plan_analysis.parse_analysis("The plan shows two exits.")
        self.assertEqual(parsed["summary"], plan_analysis.PARSE_ERROR_SUMMARY)
        self.assertEqual(parsed["operational_summary"], "The plan shows two exits.")

    def test_non_object_output_becomes_stub(self):
        parsed = plan_analysis.parse_analysis("[1, 2]")
        self.assertEqual(parsed["summary"], plan_analysis.PARSE_ERROR_SUMMARY)


class DownloadPlanTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient()

    def test_prefers_storage(self):
        self.storage.upload_bytes(PLAN_PATH, b"from-storage", "image/png")
        with patch("firesafe.plan_analysis.requests.get") as mock_get:
            download = plan_analysis.download_plan(
                self.storage.public_url(PLAN_PATH), self.storage, "house-plans"
            )
        self.assertEqual(download.source, DownloadSource.STORAGE)
        self.assertEqual(download.data, b"from-storage")
        self.assertEqual(download.content_type, "image/png")
        mock_get.assert_not_called()

    @patch("firesafe.plan_analysis.requests.get")
    def test_falls_back_to_public_url(self, mock_get):
        mock_get.return_value = MagicMock(
            content=b"from-url", headers={"Content-Type": "image/webp"}
        )
        url = self.storage.public_url("house-plans/missing.png")
        download = plan_analysis.download_plan(url, self.storage, "house-plans")
        self.assertEqual(download.source, DownloadSource.PUBLIC_URL)
        self.assertEqual(download.data, b"from-url")
        self.assertEqual(download.content_type, "image/webp")
        mock_get.assert_called_once_with(url, timeout=plan_analysis.REQUEST_TIMEOUT)

    @patch("firesafe.plan_analysis.requests.get")
    def test_url_outside_folder_goes_straight_to_network(self, mock_get):
        mock_get.return_value = MagicMock(content=b"pdf", headers={})
        download = plan_analysis.download_plan(
            "https://cdn.example.com/plans/house.pdf", self.storage, "house-plans"
        )
        self.assertEqual(download.source, DownloadSource.PUBLIC_URL)
        self.assertEqual(download.content_type, "application/pdf")

    @patch("firesafe.plan_analysis.requests.get")
    def test_both_paths_failing_raises(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(UpstreamError):
            plan_analysis.download_plan(
                self.storage.public_url("house-plans/missing.png"),
                self.storage,
                "house-plans",
            )


class AnalyzePlanApiTests(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.app.dependency_overrides[get_settings] = lambda: Settings(
            gemini_api_key="test-key", gemini_model="gemini-test"
        )
        self.client = TestClient(self.app)
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        self.storage = get_storage_client()
        if isinstance(self.storage, InMemoryStorageClient):
            self.storage.reset()
        self.storage.upload_bytes(PLAN_PATH, b"\x89PNG plan", "image/png")
        self.plan_url = self.storage.public_url(PLAN_PATH)

    def analyze(self, **body):
        return self.client.post("/api/analyze-plan", json=body)

    @patch("models.gemini.call_predict_json_with_image")
    def test_preventive_analysis_is_saved(self, mock_predict):
        mock_predict.return_value = '```json\n{"summary": "B"}\n```'
        house = make_house(
            self.db, plan_analysis=json.dumps({"summary": "A", "operational_report": {"x": 1}})
        )

        response = self.analyze(planUrl=self.plan_url, houseId=house.id)

        self.assertEqual(response.status_code, 200)
        expected = {"summary": "B", "operational_report": {"x": 1}}
        self.assertEqual(response.json(), {"success": True, "analysis": expected})
        self.assertEqual(json.loads(self.db.get_house(house.id).plan_analysis), expected)
        args, kwargs = mock_predict.call_args
        self.assertEqual(args[1], b"\x89PNG plan")
        self.assertEqual(kwargs["api_key"], "test-key")
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertEqual(kwargs["mime_type"], "image/png")

    @patch("models.gemini.call_predict_json_with_image")
    def test_operational_analysis_uses_context(self, mock_predict):
        mock_predict.return_value = '{"operational_summary": "C"}'
        house = make_house(self.db, plan_analysis=json.dumps({"summary": "A"}))

        response = self.analyze(
            planUrl=self.plan_url,
            houseId=str(house.id),
            mode="operational",
            contextData={"floors": 3},
            promptInstruction="Focus on the staircase.",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["analysis"],
            {"summary": "A", "operational_report": {"operational_summary": "C"}},
        )
        prompt = mock_predict.call_args.args[0]
        self.assertIn('{"floors": 3}', prompt)
        self.assertIn("Focus on the staircase.", prompt)

    @patch("models.gemini.call_predict_json_with_image")
    def test_malformed_stored_analysis_is_replaced(self, mock_predict):
        mock_predict.return_value = '{"summary": "fresh"}'
        house = make_house(self.db, plan_analysis="{not json")
        response = self.analyze(planUrl=self.plan_url, houseId=house.id)
        self.assertEqual(response.json()["analysis"], {"summary": "fresh"})

    def test_missing_fields(self):
        response = self.analyze(planUrl=self.plan_url)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "MISSING_REQUIRED_FIELD")

        response = self.analyze(planUrl=self.plan_url, houseId="abc")
        self.assertEqual(response.json()["code"], "INVALID_ID")

    def test_missing_api_key(self):
        self.app.dependency_overrides[get_settings] = lambda: Settings(gemini_api_key=None)
        house = make_house(self.db)
        response = self.analyze(planUrl=self.plan_url, houseId=house.id)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "CONFIGURATION_ERROR")

    @patch("models.gemini.call_predict_json_with_image")
    def test_unknown_house(self, mock_predict):
        response = self.analyze(planUrl=self.plan_url, houseId=404)
        self.assertEqual(response.status_code, 404)
        mock_predict.assert_not_called()

    @patch("models.gemini.call_predict_json_with_image")
    def test_model_error_is_propagated(self, mock_predict):
        mock_predict.side_effect = gemini.GeminiApiError(403, "API key not valid")
        house = make_house(self.db, plan_analysis=json.dumps({"summary": "A"}))

        response = self.analyze(planUrl=self.plan_url, houseId=house.id)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "UPSTREAM_ERROR")
        self.assertIn("API key not valid", response.json()["error"])
        self.assertEqual(json.loads(self.db.get_house(house.id).plan_analysis), {"summary": "A"})

    @patch("firesafe.plan_analysis.requests.get")
    @patch("models.gemini.call_predict_json_with_image")
    def test_download_failure_is_propagated(self, mock_predict, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        house = make_house(self.db)
        response = self.analyze(
            planUrl="https://example.test/storage/house-plans/gone.png", houseId=house.id
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "UPSTREAM_ERROR")
        mock_predict.assert_not_called()


if __name__ == "__main__":
    unittest.main()
