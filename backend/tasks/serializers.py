from rest_framework import serializers

from .models import Task
from .reconciler import Priority, StepStatus, TaskStatus

STATUS_CHOICES = [s.value for s in TaskStatus]
STEP_STATUS_CHOICES = [s.value for s in StepStatus]
PRIORITY_CHOICES = [p.value for p in Priority]


class StepInputSerializer(serializers.Serializer):
    description = serializers.CharField()
    status = serializers.ChoiceField(choices=STEP_STATUS_CHOICES, required=False)


class TaskInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    timeEstimate = serializers.FloatField(source="time_estimate")
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, required=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    date = serializers.DateField(required=False)
    steps = StepInputSerializer(many=True, required=False)
    dependency = serializers.CharField(max_length=255, required=False, allow_blank=True)
    onHoldReason = serializers.CharField(source="on_hold_reason", max_length=255,
                                         required=False, allow_blank=True)

    def validate_timeEstimate(self, value: float):
        if value <= 0:
            raise serializers.ValidationError("Time estimate must be positive")
        return value


class TaskUpdateSerializer(TaskInputSerializer):
    """Whole-task update: every field optional, steps are managed separately."""

    name = serializers.CharField(max_length=255, required=False)
    timeEstimate = serializers.FloatField(source="time_estimate", required=False)
    steps = None


class StepCreateSerializer(serializers.Serializer):
    description = serializers.CharField(error_messages={
        "required": "Step description required",
        "blank": "Step description required",
    })


class StepUpdateSerializer(serializers.Serializer):
    description = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=STEP_STATUS_CHOICES, required=False)


class BulkTaskSerializer(serializers.Serializer):
    tasks = serializers.ListField(child=serializers.DictField(), required=False)
    rawText = serializers.CharField(source="raw_text", required=False, allow_blank=True)
    defaultTimeEstimate = serializers.FloatField(source="default_time_estimate", required=False,
                                                 default=30)
    defaultPriority = serializers.ChoiceField(source="default_priority", choices=PRIORITY_CHOICES,
                                              required=False, default=Priority.MEDIUM.value)
    defaultDate = serializers.DateField(source="default_date", required=False)

    def validate_defaultTimeEstimate(self, value: float):
        if value <= 0:
            raise serializers.ValidationError("Default time estimate must be positive")
        return value


class TaskSerializer(serializers.ModelSerializer):
    timeEstimate = serializers.FloatField(source="time_estimate")
    onHoldReason = serializers.CharField(source="on_hold_reason")
    progressPercentage = serializers.IntegerField(source="progress_percentage")
    moveCount = serializers.IntegerField(source="move_count")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Task
        fields = [
            "id", "user", "name", "timeEstimate", "dependency", "priority", "status",
            "onHoldReason", "date", "steps", "progressPercentage", "moveCount",
            "createdAt", "updatedAt",
        ]
