# views.py
from typing import Any, Dict, List

from django.db import transaction
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from taskflow.logging_config import get_logger

from . import reconciler
from .bulk import fill_defaults, parse_raw_text
from .models import Task
from .serializers import (
    STATUS_CHOICES,
    BulkTaskSerializer,
    StepCreateSerializer,
    StepUpdateSerializer,
    TaskInputSerializer,
    TaskSerializer,
    TaskUpdateSerializer,
)

logger = get_logger(__name__)


def get_owned_task(request, pk: int, for_update: bool = False) -> Task:
    """Return the requesting user's task `pk`; other users' tasks are reported as missing."""
    queryset = Task.objects.filter(user=request.user)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=pk)
    except Task.DoesNotExist:
        raise NotFound("Task not found")


def save_state(task: Task, state: reconciler.TaskState) -> Task:
    task.apply_state(state)
    task.save()
    return task


class TaskList(APIView):
    """
    GET  /api/tasks/   own tasks, optionally filtered by ?date=YYYY-MM-DD and ?status=
    POST /api/tasks/   create a task; status and progress are derived from its steps
    """

    def get(self, request):
        tasks = Task.objects.filter(user=request.user)

        raw_date = request.query_params.get("date")
        if raw_date:
            day = parse_date(raw_date)
            if day is None:
                raise ValidationError({"date": ["Date has wrong format. Use YYYY-MM-DD."]})
            tasks = tasks.filter(date=day)

        task_status = request.query_params.get("status")
        if task_status:
            if task_status not in STATUS_CHOICES:
                raise ValidationError({"status": [f'"{task_status}" is not a valid choice.']})
            tasks = tasks.filter(status=task_status)

        return Response(TaskSerializer(tasks, many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = TaskInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        state = reconciler.create(serializer.validated_data)
        task = save_state(Task(user=request.user), state)

        logger.info("task_created", task_id=task.pk, user_id=request.user.pk,
                    steps=len(task.steps), status=task.status)
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


class TaskBulkCreate(APIView):
    """
    POST /api/tasks/bulk/
    Creates many tasks at once, either from a `tasks` array or from `rawText`
    (one task per line). All tasks are created or none are.
    """

    def post(self, request):
        serializer = BulkTaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        defaults = (data["default_time_estimate"], data["default_priority"], data.get("default_date"))
        raw_text = data.get("raw_text") or ""

        payloads: List[Dict[str, Any]]
        if raw_text.strip():
            payloads = parse_raw_text(raw_text, *defaults)
        elif "tasks" in data:
            items = [fill_defaults(t, *defaults) for t in data["tasks"]]
            item_serializer = TaskInputSerializer(data=items, many=True)
            item_serializer.is_valid(raise_exception=True)
            payloads = item_serializer.validated_data
        else:
            raise ValidationError({"message": "Either tasks array or rawText must be provided"})

        if not payloads:
            raise ValidationError({"message": "No valid tasks to create"})

        with transaction.atomic():
            created = [
                save_state(Task(user=request.user), reconciler.create(payload))
                for payload in payloads
            ]

        logger.info("tasks_bulk_created", user_id=request.user.pk, count=len(created),
                    source="rawText" if raw_text.strip() else "tasks")
        return Response({
            "message": f"Successfully created {len(created)} tasks",
            "tasks": TaskSerializer(created, many=True).data,
            "count": len(created),
        }, status=status.HTTP_201_CREATED)


class TaskDetail(APIView):
    """
    GET    /api/tasks/<id>/
    PUT    /api/tasks/<id>/   whole-task update (PATCH behaves the same: absent fields are kept)
    DELETE /api/tasks/<id>/
    """

    def get(self, request, pk):
        task = get_owned_task(request, pk)
        return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)

    def put(self, request, pk):
        with transaction.atomic():
            task = get_owned_task(request, pk, for_update=True)
            serializer = TaskUpdateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)

            prior_moves = task.move_count
            save_state(task, reconciler.apply_update(task.to_state(), serializer.validated_data))

        logger.info("task_updated", task_id=task.pk, user_id=request.user.pk,
                    status=task.status, moved=task.move_count != prior_moves)
        return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)

    patch = put

    def delete(self, request, pk):
        task = get_owned_task(request, pk)
        task.delete()
        logger.info("task_deleted", task_id=pk, user_id=request.user.pk)
        return Response({"message": "Task deleted"}, status=status.HTTP_200_OK)


class StepList(APIView):
    """
    POST /api/tasks/<id>/steps/   append a pending step
    """

    def post(self, request, pk):
        with transaction.atomic():
            task = get_owned_task(request, pk, for_update=True)
            serializer = StepCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            save_state(task, reconciler.add_step(task.to_state(), serializer.validated_data["description"]))

        logger.info("step_added", task_id=task.pk, user_id=request.user.pk,
                    step_id=task.steps[-1]["id"], status=task.status)
        return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)


class StepDetail(APIView):
    """
    PUT    /api/tasks/<id>/steps/<step_id>/   change description and/or status
    DELETE /api/tasks/<id>/steps/<step_id>/

    Steps are addressed by their stable id, not by position.
    """

    def put(self, request, pk, step_id):
        with transaction.atomic():
            task = get_owned_task(request, pk, for_update=True)
            serializer = StepUpdateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            fields = serializer.validated_data
            state = reconciler.edit_step(
                task.to_state(),
                step_id,
                description=fields.get("description"),
                status=fields.get("status"),
            )
            save_state(task, state)

        logger.info("step_edited", task_id=task.pk, user_id=request.user.pk, step_id=step_id,
                    status=task.status, progress=task.progress_percentage)
        return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)

    patch = put

    def delete(self, request, pk, step_id):
        with transaction.atomic():
            task = get_owned_task(request, pk, for_update=True)
            save_state(task, reconciler.delete_step(task.to_state(), step_id))

        logger.info("step_deleted", task_id=task.pk, user_id=request.user.pk, step_id=step_id,
                    status=task.status)
        return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)
