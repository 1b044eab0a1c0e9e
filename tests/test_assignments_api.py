import re
import uuid
from datetime import datetime
from decimal import Decimal
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value

from api_case import JobWorkerApiTestCase


COTTON = {"itemId": "FAB-1", "itemName": "Cotton Fabric", "itemCode": "CF-01", "unit": "m"}
THREAD = {"itemId": "THR-9", "itemName": "Polyester Thread", "unit": "spool"}


class AssignmentApiTestCase(JobWorkerApiTestCase):
    def setUp(self):
        super().setUp()
        self.worker = self._create_worker()

    def _patch_status(self, assignment_id, status, **extra):
        return self.client.patch(
            f"/api/assignments/{assignment_id}/status",
            json={"status": status, **extra},
            headers=self._headers(),
        )

    def test_create_assignment_snapshots_worker_and_numbers_sequentially(self):
        first = self._create_assignment(self.worker["id"])
        second = self._create_assignment(self.worker["id"])

        self.assertEqual(first["assignmentNumber"], "JWA000001")
        self.assertEqual(second["assignmentNumber"], "JWA000002")
        self.assertEqual(first["workerName"], "Ramesh Dyers")
        self.assertEqual(first["workerCode"], self.worker["workerCode"])
        self.assertEqual(first["status"], "assigned")
        self.assertEqual(first["paymentStatus"], "pending")
        self.assertEqual(first["advancePaid"], 0.0)
        self.assertIsNone(first["balanceAmount"])
        self.assertEqual(first["version"], 1)

        self.client.put(
            f"/api/workers/{self.worker['id']}", json={"name": "Ramesh & Sons"}, headers=self._headers()
        )
        fetched = self.client.get(f"/api/assignments/{first['id']}", headers=self._headers()).get_json()
        self.assertEqual(fetched["data"]["workerName"], "Ramesh Dyers")

    def test_create_assignment_retries_number_conflict(self):
        self._create_assignment(self.worker["id"])
        with mock.patch(
            "job_worker.assignments.get_next_assignment_number",
            side_effect=["JWA000001", "JWA000002"],
        ):
            second = self._create_assignment(self.worker["id"])
        self.assertEqual(second["assignmentNumber"], "JWA000002")

    def test_explicit_duplicate_number_conflicts(self):
        self._create_assignment(self.worker["id"], assignmentNumber="JOB-77")
        response = self.client.post(
            "/api/assignments",
            json={"workerId": self.worker["id"], "jobType": "dyeing", "assignmentNumber": "job-77"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 409)

    def test_create_assignment_requires_job_type(self):
        response = self.client.post(
            "/api/assignments", json={"workerId": self.worker["id"]}, headers=self._headers()
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("job_type", response.get_json()["errors"])

    def test_inactive_worker_cannot_take_assignments(self):
        self.client.put(
            f"/api/workers/{self.worker['id']}", json={"status": "inactive"}, headers=self._headers()
        )
        response = self.client.post(
            "/api/assignments",
            json={"workerId": self.worker["id"], "jobType": "dyeing"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["kind"], "business_rule")

    def test_worker_from_another_company_cannot_be_assigned(self):
        foreign = self._create_worker(token=self.other_token)
        response = self.client.post(
            "/api/assignments",
            json={"workerId": foreign["id"], "jobType": "dyeing"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 403)

    def test_material_remaining_is_derived(self):
        assignment = self._create_assignment(
            self.worker["id"],
            materials=[
                {
                    **COTTON,
                    "quantityGiven": 100,
                    "quantityUsed": 40,
                    "quantityReturned": 20,
                    "quantityWasted": 5,
                    "quantityRemaining": 999,
                    "rate": 12.5,
                }
            ],
        )
        material = assignment["materials"][0]
        self.assertEqual(material["index"], 0)
        self.assertEqual(material["quantityRemaining"], 35.0)
        self.assertEqual(material["totalValue"], 1250.0)

    def test_over_consumed_material_floors_remaining_at_zero(self):
        assignment = self._create_assignment(
            self.worker["id"],
            materials=[{**THREAD, "quantityGiven": 10, "quantityUsed": 8, "quantityWasted": 5}],
        )
        material = assignment["materials"][0]
        self.assertEqual(material["quantityRemaining"], 0.0)
        self.assertEqual(material["quantityUsed"], 8.0)
        self.assertIsNone(material["totalValue"])

    def test_negative_quantities_are_rejected(self):
        response = self.client.post(
            "/api/assignments",
            json={
                "workerId": self.worker["id"],
                "jobType": "dyeing",
                "materials": [{**COTTON, "quantityGiven": -1}],
            },
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("materials.0.quantity_given", response.get_json()["errors"])

    def test_payment_fields_follow_amounts(self):
        assignment = self._create_assignment(self.worker["id"], totalAmount=10000, advancePaid=4000)
        self.assertEqual(assignment["balanceAmount"], 6000.0)
        self.assertEqual(assignment["paymentStatus"], "partial")

        response = self.client.put(
            f"/api/assignments/{assignment['id']}", json={"advancePaid": 10000}, headers=self._headers()
        )
        data = response.get_json()["data"]
        self.assertEqual(data["balanceAmount"], 0.0)
        self.assertEqual(data["paymentStatus"], "paid")

        response = self.client.put(
            f"/api/assignments/{assignment['id']}",
            json={"advancePaid": 0, "balanceAmount": 1, "paymentStatus": "paid"},
            headers=self._headers(),
        )
        data = response.get_json()["data"]
        self.assertEqual(data["balanceAmount"], 10000.0)
        self.assertEqual(data["paymentStatus"], "pending")

    def test_status_transitions_stamp_dates_once(self):
        assignment = self._create_assignment(self.worker["id"])

        started = self._patch_status(assignment["id"], "in_progress").get_json()["data"]
        self.assertIsNotNone(started["startDate"])
        self.assertIsNone(started["actualCompletionDate"])

        self._patch_status(assignment["id"], "on_hold")
        resumed = self._patch_status(assignment["id"], "in_progress").get_json()["data"]
        self.assertEqual(resumed["startDate"], started["startDate"])

        completed = self._patch_status(assignment["id"], "completed").get_json()["data"]
        self.assertEqual(completed["status"], "completed")
        self.assertGreaterEqual(
            datetime.fromisoformat(completed["actualCompletionDate"]),
            datetime.fromisoformat(completed["startDate"]),
        )

    def test_invalid_status_is_rejected(self):
        assignment = self._create_assignment(self.worker["id"])
        response = self._patch_status(assignment["id"], "archived")
        self.assertEqual(response.status_code, 400)
        self.assertIn("status", response.get_json()["errors"])

    def test_stale_version_conflicts(self):
        assignment = self._create_assignment(self.worker["id"])
        self.assertEqual(assignment["version"], 1)

        updated = self.client.put(
            f"/api/assignments/{assignment['id']}",
            json={"remarks": "first", "version": 1},
            headers=self._headers(),
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.get_json()["data"]["version"], 2)

        stale = self.client.put(
            f"/api/assignments/{assignment['id']}",
            json={"remarks": "second", "version": 1},
            headers=self._headers(),
        )
        self.assertEqual(stale.status_code, 409)
        self.assertEqual(stale.get_json()["kind"], "conflict")

        fetched = self.client.get(f"/api/assignments/{assignment['id']}", headers=self._headers()).get_json()
        self.assertEqual(fetched["data"]["remarks"], "first")

    def test_material_append_and_patch(self):
        assignment = self._create_assignment(self.worker["id"], materials=[{**COTTON, "quantityGiven": 100}])

        response = self.client.post(
            f"/api/assignments/{assignment['id']}/materials",
            json={**THREAD, "quantityGiven": 12, "rate": 30},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 201)
        data = response.get_json()["data"]
        self.assertEqual([row["itemId"] for row in data["materials"]], ["FAB-1", "THR-9"])
        self.assertEqual(data["materials"][1]["index"], 1)
        self.assertEqual(data["materials"][1]["totalValue"], 360.0)
        self.assertEqual(data["version"], 2)

        response = self.client.patch(
            f"/api/assignments/{assignment['id']}/materials/0",
            json={"quantityUsed": 70, "quantityReturned": 10},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 200)
        data = response.get_json()["data"]
        cotton = data["materials"][0]
        self.assertEqual(cotton["quantityGiven"], 100.0)
        self.assertEqual(cotton["quantityRemaining"], 20.0)
        self.assertEqual(cotton["itemName"], "Cotton Fabric")
        self.assertEqual(data["version"], 3)

    def test_material_patch_with_bad_index(self):
        assignment = self._create_assignment(self.worker["id"], materials=[{**COTTON, "quantityGiven": 5}])
        for index in ("1", "-1", "first"):
            response = self.client.patch(
                f"/api/assignments/{assignment['id']}/materials/{index}",
                json={"quantityUsed": 1},
                headers=self._headers(),
            )
            self.assertEqual(response.status_code, 400, index)
            self.assertEqual(response.get_json()["errors"], {"index": "Invalid material index"})

    def test_update_replaces_material_list(self):
        assignment = self._create_assignment(
            self.worker["id"],
            materials=[{**COTTON, "quantityGiven": 100}, {**THREAD, "quantityGiven": 4}],
        )
        response = self.client.put(
            f"/api/assignments/{assignment['id']}",
            json={"materials": [{**THREAD, "quantityGiven": 6, "quantityUsed": 2}]},
            headers=self._headers(),
        )
        data = response.get_json()["data"]
        self.assertEqual(len(data["materials"]), 1)
        self.assertEqual(data["materials"][0]["index"], 0)
        self.assertEqual(data["materials"][0]["quantityRemaining"], 4.0)

    def test_assignment_summary(self):
        assignment = self._create_assignment(
            self.worker["id"],
            materials=[
                {**COTTON, "quantityGiven": 100, "quantityUsed": 40, "rate": 2},
                {**THREAD, "quantityGiven": 10, "quantityWasted": 1},
            ],
        )
        response = self.client.get(
            f"/api/assignments/{assignment['id']}",
            query_string={"includeSummary": "1"},
            headers=self._headers(),
        )
        summary = response.get_json()["data"]["summary"]
        self.assertEqual(summary["totalMaterials"], 2)
        self.assertEqual(summary["totalGiven"], 110.0)
        self.assertEqual(summary["totalUsed"], 40.0)
        self.assertEqual(summary["totalWasted"], 1.0)
        self.assertEqual(summary["totalRemaining"], 69.0)
        self.assertEqual(summary["totalValue"], 200.0)

    def test_list_assignments_filters(self):
        self._create_assignment(self.worker["id"], jobType="printing", assignedDate="2024-01-15")
        march = self._create_assignment(self.worker["id"], jobType="dyeing", assignedDate="2024-03-31T18:30:00")
        self._create_assignment(self.worker["id"], jobType="dyeing", assignedDate="2024-04-02")
        self._create_assignment(self._create_worker(token=self.other_token)["id"], token=self.other_token)

        everything = self.client.get("/api/assignments", headers=self._headers()).get_json()
        self.assertEqual(everything["total"], 3)
        self.assertEqual(everything["data"][0]["assignedDate"][:10], "2024-04-02")

        in_march = self.client.get(
            "/api/assignments",
            query_string={"dateFrom": "2024-03-01", "dateTo": "2024-03-31"},
            headers=self._headers(),
        ).get_json()
        self.assertEqual([row["id"] for row in in_march["data"]], [march["id"]])

        search = self.client.get(
            "/api/assignments", query_string={"search": march["assignmentNumber"]}, headers=self._headers()
        ).get_json()
        self.assertEqual(search["total"], 1)

        bad_range = self.client.get(
            "/api/assignments",
            query_string={"dateFrom": "2024-04-01", "dateTo": "2024-03-01"},
            headers=self._headers(),
        )
        self.assertEqual(bad_range.status_code, 400)

    def test_material_report_matches_direct_aggregation(self):
        self._create_assignment(
            self.worker["id"],
            assignedDate="2024-02-10",
            materials=[
                {**COTTON, "quantityGiven": 100, "quantityUsed": 40, "quantityReturned": 20, "rate": 3},
                {**THREAD, "quantityGiven": 10, "quantityUsed": 9},
            ],
        )
        self._create_assignment(
            self.worker["id"],
            assignedDate="2024-02-20",
            materials=[{**COTTON, "quantityGiven": 50, "quantityWasted": 5, "rate": 3}],
        )
        self._create_assignment(
            self.worker["id"],
            assignedDate="2024-05-01",
            materials=[{**COTTON, "quantityGiven": 999}],
        )

        from models import AssignmentMaterial, JobWorkerAssignment

        rows = (
            AssignmentMaterial.query.join(JobWorkerAssignment)
            .filter(JobWorkerAssignment.assigned_date < datetime(2024, 3, 1))
            .all()
        )
        expected = {}
        for row in rows:
            totals = expected.setdefault(row.item_id, {"given": Decimal("0"), "remaining": Decimal("0")})
            totals["given"] += row.quantity_given
            totals["remaining"] += row.quantity_remaining

        response = self.client.get(
            f"/api/workers/{self.worker['id']}/material-report",
            query_string={"dateFrom": "2024-02-01", "dateTo": "2024-02-29"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 200)
        report = {row["itemId"]: row for row in response.get_json()["data"]}
        self.assertEqual(set(report), set(expected))
        for item_id, totals in expected.items():
            self.assertEqual(report[item_id]["totalGiven"], float(totals["given"]))
            self.assertEqual(report[item_id]["totalRemaining"], float(totals["remaining"]))

        cotton = report["FAB-1"]
        self.assertEqual(cotton["itemName"], "Cotton Fabric")
        self.assertEqual(cotton["totalGiven"], 150.0)
        self.assertEqual(cotton["totalRemaining"], 85.0)
        self.assertEqual(cotton["totalValue"], 450.0)
        self.assertEqual(report["THR-9"]["totalValue"], 0.0)

    def test_assignment_from_another_company_is_forbidden(self):
        assignment = self._create_assignment(self.worker["id"])
        response = self._patch_status(assignment["id"], "in_progress")
        self.assertEqual(response.status_code, 200)

        response = self.client.patch(
            f"/api/assignments/{assignment['id']}/status",
            json={"status": "cancelled"},
            headers=self._headers(self.other_token),
        )
        self.assertEqual(response.status_code, 403)

    def test_assignment_number_falls_back_to_timestamp(self):
        with mock.patch(
            "job_worker.assignments._existing_assignment_numbers",
            side_effect=SQLAlchemyError("sequence unavailable"),
        ):
            assignment = self._create_assignment(self.worker["id"])

        self.assertRegex(assignment["assignmentNumber"], re.compile(r"^JWA\d{8}$"))
        fetched = self.client.get(f"/api/assignments/{assignment['id']}", headers=self._headers()).get_json()
        self.assertEqual(fetched["data"]["assignmentNumber"], assignment["assignmentNumber"])

    def test_worker_flagged_inactive_cannot_take_assignments(self):
        from models import JobWorker

        worker = self.app_module.db.session.get(JobWorker, uuid.UUID(self.worker["id"]))
        worker.is_active = False
        self.app_module.db.session.commit()

        response = self.client.post(
            "/api/assignments",
            json={"workerId": self.worker["id"], "jobType": "dyeing"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["kind"], "business_rule")

    def test_material_values_are_stored_at_column_scale(self):
        assignment = self._create_assignment(
            self.worker["id"], materials=[{**COTTON, "quantityGiven": 100, "rate": 0.125}]
        )
        response = self.client.post(
            f"/api/assignments/{assignment['id']}/materials",
            json={**THREAD, "quantityGiven": "1.0004", "quantityUsed": "0.0005"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 201)

        self.app_module.db.session.expire_all()
        fetched = self.client.get(f"/api/assignments/{assignment['id']}", headers=self._headers()).get_json()
        cotton, thread = fetched["data"]["materials"]
        self.assertEqual(cotton["rate"], 0.13)
        self.assertEqual(cotton["totalValue"], 13.0)
        self.assertEqual(thread["quantityGiven"], 1.0)
        self.assertEqual(thread["quantityUsed"], 0.001)
        self.assertEqual(thread["quantityRemaining"], 0.999)

        from models import AssignmentMaterial

        for row in AssignmentMaterial.query.all():
            remaining = row.quantity_given - row.quantity_used - row.quantity_returned - row.quantity_wasted
            self.assertEqual(row.quantity_remaining, max(Decimal("0"), remaining))
            if row.rate is not None:
                self.assertEqual(row.total_value, (row.rate * row.quantity_given).quantize(Decimal("0.01")))

    def test_patched_material_is_stored_at_column_scale(self):
        assignment = self._create_assignment(self.worker["id"], materials=[{**COTTON, "quantityGiven": 10}])
        response = self.client.patch(
            f"/api/assignments/{assignment['id']}/materials/0",
            json={"quantityWasted": "2.0005", "rate": "1.005"},
            headers=self._headers(),
        )
        self.assertEqual(response.status_code, 200)
        cotton = response.get_json()["data"]["materials"][0]
        self.assertEqual(cotton["quantityWasted"], 2.001)
        self.assertEqual(cotton["quantityRemaining"], 7.999)
        self.assertEqual(cotton["rate"], 1.01)
        self.assertEqual(cotton["totalValue"], 10.1)

    def test_payment_amounts_are_stored_at_column_scale(self):
        assignment = self._create_assignment(self.worker["id"], totalAmount="100.005", advancePaid="40.004")
        self.assertEqual(assignment["totalAmount"], 100.01)
        self.assertEqual(assignment["advancePaid"], 40.0)
        self.assertEqual(assignment["balanceAmount"], 60.01)

        self.app_module.db.session.expire_all()
        fetched = self.client.get(f"/api/assignments/{assignment['id']}", headers=self._headers()).get_json()
        self.assertEqual(fetched["data"]["balanceAmount"], 60.01)

    def test_lost_update_race_conflicts(self):
        assignment = self._create_assignment(self.worker["id"], materials=[{**COTTON, "quantityGiven": 50}])
        first = self.client.put(
            f"/api/assignments/{assignment['id']}", json={"remarks": "first writer"}, headers=self._headers()
        )
        self.assertEqual(first.get_json()["data"]["version"], 2)

        import job_worker.assignments as assignment_service

        load = assignment_service.get_assignment

        def load_before_first_writer(*args, **kwargs):
            loaded = load(*args, **kwargs)
            # this writer read the row while it was still at version 1
            set_committed_value(loaded, "version", 1)
            return loaded

        with mock.patch.object(assignment_service, "get_assignment", side_effect=load_before_first_writer):
            response = self.client.post(
                f"/api/assignments/{assignment['id']}/materials",
                json={**THREAD, "quantityGiven": 3},
                headers=self._headers(),
            )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["kind"], "conflict")

        self.app_module.db.session.expire_all()
        fetched = self.client.get(f"/api/assignments/{assignment['id']}", headers=self._headers()).get_json()["data"]
        self.assertEqual(fetched["remarks"], "first writer")
        self.assertEqual(fetched["version"], 2)
        self.assertEqual([row["itemId"] for row in fetched["materials"]], ["FAB-1"])
