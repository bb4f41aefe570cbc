from django.test import TestCase, override_settings
from rest_framework.test import APIClient


class HealthCheckTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_reports_db_and_configured_payments(self):
        res = self.client.get("/api/health/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["db"], "ok")
        self.assertEqual(res.data["payments"], "configured")

    @override_settings(PAYMENTS={"STRIPE": {"SECRET_KEY": "sk_test_dummy"}})
    def test_missing_webhook_secret_is_unconfigured(self):
        res = self.client.get("/api/health/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["payments"], "unconfigured")
