import importlib
import os
import sys
import unittest


class JobWorkerApiTestCase(unittest.TestCase):
    """Builds the app on an in-memory database with two companies and their managers."""

    def setUp(self):
        os.environ["DATABASE_URL"] = "sqlite:///:memory:"
        if "app" in sys.modules:
            self.app_module = importlib.reload(sys.modules["app"])
        else:
            self.app_module = importlib.import_module("app")

        self.app = self.app_module.create_app()
        self.app.testing = True
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.app_module.db.create_all()

        from models import Company, RoleEnum, User

        db = self.app_module.db
        self.company = Company(key="acme", name="Acme Textiles")
        self.other_company = Company(key="globex", name="Globex Garments")
        db.session.add_all([self.company, self.other_company])

        users = [
            ("manager@acme.test", RoleEnum.production_manager, "acme"),
            ("manager@globex.test", RoleEnum.production_manager, "globex"),
            ("admin@jobwork.test", RoleEnum.admin, None),
        ]
        for email, role, company_key in users:
            user = User(name=email.split("@")[0].title(), email=email, role=role, company_key=company_key)
            user.set_password("Secret@123")
            db.session.add(user)
        db.session.commit()

        self.client = self.app.test_client()
        self.token = self._login("manager@acme.test")
        self.other_token = self._login("manager@globex.test")
        self.admin_token = self._login("admin@jobwork.test")

    def tearDown(self):
        self.app_module.db.session.remove()
        self.app_module.db.drop_all()
        self.ctx.pop()
        os.environ.pop("DATABASE_URL", None)
        if "app" in sys.modules:
            del sys.modules["app"]

    def _login(self, email, password="Secret@123"):
        response = self.client.post("/api/auth/login", json={"email": email, "password": password})
        self.assertEqual(response.status_code, 200, response.get_json())
        return response.get_json()["access_token"]

    def _headers(self, token=None):
        return {"Authorization": f"Bearer {token or self.token}"}

    def _create_worker(self, token=None, **overrides):
        payload = {
            "name": "Ramesh Dyers",
            "phoneNumber": "9876543210",
            "specialization": ["dyeing", "washing"],
            "skillLevel": "advanced",
        }
        payload.update(overrides)
        response = self.client.post("/api/workers", json=payload, headers=self._headers(token))
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()["data"]

    def _create_assignment(self, worker_id, token=None, **overrides):
        payload = {
            "workerId": worker_id,
            "jobType": "dyeing",
            "jobDescription": "Dye 100m cotton fabric navy blue",
            "assignedDate": "2024-03-01",
            "materials": [],
        }
        payload.update(overrides)
        response = self.client.post("/api/assignments", json=payload, headers=self._headers(token))
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()["data"]
