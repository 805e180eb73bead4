from datetime import date

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Task


class TaskApiTestCase(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="ana@example.com", email="ana@example.com",
                                             password="secret123")
        self.other = User.objects.create_user(username="bo@example.com", email="bo@example.com",
                                              password="secret123")
        self.client.force_authenticate(self.user)

    def create_task(self, **extra):
        payload = {"name": "Write report", "timeEstimate": 60}
        payload.update(extra)
        response = self.client.post(reverse("task-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data


class TaskCrudTests(TaskApiTestCase):
    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.get(reverse("task-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_derives_status_and_progress(self):
        data = self.create_task(steps=[
            {"description": "outline", "status": "Completed"},
            {"description": "draft"},
        ], date="2024-01-01", priority="High")

        self.assertEqual(data["status"], "In Progress")
        self.assertEqual(data["progressPercentage"], 50)
        self.assertEqual(data["moveCount"], 0)
        self.assertEqual(data["priority"], "High")
        self.assertEqual(data["date"], "2024-01-01")
        self.assertEqual([s["id"] for s in data["steps"]], [1, 2])
        self.assertIsNotNone(data["steps"][0]["timestamp"])
        self.assertIsNone(data["steps"][1]["timestamp"])
        self.assertEqual(data["user"], self.user.pk)

    def test_create_defaults(self):
        data = self.create_task()
        self.assertEqual(data["status"], "Pending")
        self.assertEqual(data["priority"], "Medium")
        self.assertEqual(data["steps"], [])
        self.assertEqual(len(data["date"]), 10)

    def test_create_validation(self):
        response = self.client.post(reverse("task-list"), {"timeEstimate": 10}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("name", response.data)

        response = self.client.post(reverse("task-list"), {"name": "x", "timeEstimate": 0}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("timeEstimate", response.data)

        response = self.client.post(reverse("task-list"), {"name": "x", "timeEstimate": 5, "priority": "Urgent"},
                                    format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_own_tasks_with_filters(self):
        self.create_task(name="a", date="2024-01-01")
        self.create_task(name="b", date="2024-01-02", status="On Hold")
        Task.objects.create(user=self.other, name="theirs", time_estimate=5, date=date(2024, 1, 1))

        response = self.client.get(reverse("task-list"))
        self.assertEqual([t["name"] for t in response.data], ["a", "b"])

        response = self.client.get(reverse("task-list"), {"date": "2024-01-01"})
        self.assertEqual([t["name"] for t in response.data], ["a"])

        response = self.client.get(reverse("task-list"), {"status": "On Hold"})
        self.assertEqual([t["name"] for t in response.data], ["b"])

        response = self.client.get(reverse("task-list"), {"date": "yesterday"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_users_task_is_not_found(self):
        theirs = Task.objects.create(user=self.other, name="theirs", time_estimate=5, date=date(2024, 1, 1))
        url = reverse("task-detail", args=[theirs.pk])

        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.put(url, {"name": "mine"}, format="json").status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(
            self.client.post(reverse("step-list", args=[theirs.pk]), {"description": "x"},
                             format="json").status_code,
            status.HTTP_404_NOT_FOUND,
        )
        self.assertTrue(Task.objects.filter(pk=theirs.pk, name="theirs").exists())

    def test_delete(self):
        task = self.create_task()
        response = self.client.delete(reverse("task-detail", args=[task["id"]]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"message": "Task deleted"})
        self.assertFalse(Task.objects.filter(pk=task["id"]).exists())


class TaskUpdateTests(TaskApiTestCase):
    def test_moving_date_counts_moves(self):
        task = self.create_task(date="2024-01-01")
        url = reverse("task-detail", args=[task["id"]])

        data = self.client.put(url, {"date": "2024-01-02"}, format="json").data
        self.assertEqual(data["moveCount"], 1)

        data = self.client.put(url, {"date": "2024-01-02", "name": "Renamed"}, format="json").data
        self.assertEqual(data["moveCount"], 1)
        self.assertEqual(data["name"], "Renamed")

        data = self.client.patch(url, {"priority": "Low"}, format="json").data
        self.assertEqual(data["moveCount"], 1)
        self.assertEqual(data["date"], "2024-01-02")

    def test_completing_forces_steps(self):
        task = self.create_task(steps=[{"description": "a"}, {"description": "b"}])
        response = self.client.put(reverse("task-detail", args=[task["id"]]), {"status": "Completed"},
                                   format="json")
        data = response.data

        self.assertEqual(data["status"], "Completed")
        self.assertEqual(data["progressPercentage"], 100)
        self.assertTrue(all(s["status"] == "Completed" and s["timestamp"] for s in data["steps"]))

    def test_steps_override_requested_status(self):
        task = self.create_task(steps=[{"description": "a", "status": "Completed"}, {"description": "b"}])
        data = self.client.put(reverse("task-detail", args=[task["id"]]), {"status": "Pending"},
                               format="json").data
        self.assertEqual(data["status"], "In Progress")

    def test_on_hold(self):
        task = self.create_task(steps=[{"description": "a"}])
        data = self.client.put(reverse("task-detail", args=[task["id"]]),
                               {"status": "On Hold", "onHoldReason": "waiting for parts"},
                               format="json").data
        self.assertEqual(data["status"], "On Hold")
        self.assertEqual(data["onHoldReason"], "waiting for parts")

    def test_invalid_update(self):
        task = self.create_task()
        response = self.client.put(reverse("task-detail", args=[task["id"]]), {"status": "Done"},
                                   format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_task(self):
        response = self.client.put(reverse("task-detail", args=[9999]), {"name": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StepApiTests(TaskApiTestCase):
    def test_first_step_starts_task(self):
        task = self.create_task()
        response = self.client.post(reverse("step-list", args=[task["id"]]), {"description": "gather data"},
                                    format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "In Progress")
        self.assertEqual(response.data["steps"], [
            {"id": 1, "description": "gather data", "status": "Pending", "timestamp": None},
        ])

    def test_blank_description(self):
        task = self.create_task()
        response = self.client.post(reverse("step-list", args=[task["id"]]), {"description": ""},
                                    format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["description"], ["Step description required"])

    def test_completing_last_pending_step(self):
        task = self.create_task(steps=[{"description": "a", "status": "Completed"}, {"description": "b"}])
        response = self.client.put(reverse("step-detail", args=[task["id"], 2]), {"status": "Completed"},
                                   format="json")
        data = response.data
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(data["status"], "Completed")
        self.assertEqual(data["progressPercentage"], 100)
        self.assertIsNotNone(data["steps"][1]["timestamp"])

        stored = Task.objects.get(pk=task["id"])
        self.assertEqual(stored.status, "Completed")
        self.assertEqual(stored.progress_percentage, 100)

    def test_edit_description(self):
        task = self.create_task(steps=[{"description": "a"}])
        data = self.client.patch(reverse("step-detail", args=[task["id"], 1]), {"description": "renamed"},
                                 format="json").data
        self.assertEqual(data["steps"][0]["description"], "renamed")
        self.assertEqual(data["status"], "Pending")

    def test_unknown_step(self):
        task = self.create_task(steps=[{"description": "a"}])
        url = reverse("step-detail", args=[task["id"], 7])

        response = self.client.put(url, {"status": "Completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(str(response.data["detail"]), "Step not found")
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_steps_keeps_ids(self):
        task = self.create_task(steps=[
            {"description": "a", "status": "Completed"},
            {"description": "b"},
            {"description": "c"},
        ])
        data = self.client.delete(reverse("step-detail", args=[task["id"], 1])).data
        self.assertEqual([s["id"] for s in data["steps"]], [2, 3])
        self.assertEqual(data["status"], "Pending")
        self.assertEqual(data["progressPercentage"], 0)

        data = self.client.put(reverse("step-detail", args=[task["id"], 3]), {"status": "Completed"},
                               format="json").data
        self.assertEqual(data["steps"][1]["status"], "Completed")
        self.assertEqual(data["progressPercentage"], 50)

    def test_deleting_only_step(self):
        task = self.create_task(steps=[{"description": "a", "status": "Completed"}])
        self.assertEqual(task["status"], "Completed")
        data = self.client.delete(reverse("step-detail", args=[task["id"], 1])).data
        self.assertEqual(data["status"], "Pending")
        self.assertEqual(data["progressPercentage"], 0)
        self.assertEqual(data["steps"], [])


class BulkCreateTests(TaskApiTestCase):
    def test_raw_text(self):
        response = self.client.post(reverse("task-bulk-create"), {
            "rawText": "[HIGH] Pay rent (15min)\n\nCall bank - 2 hours\nWater plants",
            "defaultDate": "2024-02-10",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["count"], 3)
        self.assertEqual(response.data["message"], "Successfully created 3 tasks")

        tasks = response.data["tasks"]
        self.assertEqual([t["name"] for t in tasks], ["Pay rent", "Call bank", "Water plants"])
        self.assertEqual([t["timeEstimate"] for t in tasks], [15, 2, 30])
        self.assertEqual([t["priority"] for t in tasks], ["High", "Medium", "Medium"])
        self.assertTrue(all(t["date"] == "2024-02-10" for t in tasks))
        self.assertEqual(Task.objects.filter(user=self.user).count(), 3)

    def test_tasks_array(self):
        response = self.client.post(reverse("task-bulk-create"), {
            "tasks": [
                {"name": "a", "steps": [{"description": "s", "status": "Completed"}]},
                {"name": "b", "timeEstimate": 90, "priority": "Low"},
            ],
            "defaultTimeEstimate": 20,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        first, second = response.data["tasks"]
        self.assertEqual(first["timeEstimate"], 20)
        self.assertEqual(first["status"], "Completed")
        self.assertEqual(first["progressPercentage"], 100)
        self.assertEqual(second["timeEstimate"], 90)
        self.assertEqual(second["priority"], "Low")

    def test_invalid_task_creates_nothing(self):
        response = self.client.post(reverse("task-bulk-create"), {
            "tasks": [{"name": "ok"}, {"timeEstimate": 10}],
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Task.objects.exists())

    def test_requires_input(self):
        response = self.client.post(reverse("task-bulk-create"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(reverse("task-bulk-create"), {"tasks": []}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class IndexTests(APITestCase):
    def test_index(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"API is running")
