import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("time_estimate", models.FloatField()),
                ("dependency", models.CharField(blank=True, default="", max_length=255)),
                ("priority", models.CharField(choices=[("Low", "Low"), ("Medium", "Medium"), ("High", "High")], default="Medium", max_length=10)),
                ("status", models.CharField(choices=[("Pending", "Pending"), ("In Progress", "In Progress"), ("Completed", "Completed"), ("On Hold", "On Hold")], default="Pending", max_length=20)),
                ("on_hold_reason", models.CharField(blank=True, default="", max_length=255)),
                ("date", models.DateField()),
                ("steps", models.JSONField(default=list)),
                ("next_step_id", models.PositiveIntegerField(default=1)),
                ("progress_percentage", models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MaxValueValidator(100)])),
                ("move_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["date", "created_at"],
                "indexes": [models.Index(fields=["user", "date"], name="tasks_user_date_idx")],
            },
        ),
    ]
