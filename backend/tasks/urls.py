from django.urls import path

from .views import StepDetail, StepList, TaskBulkCreate, TaskDetail, TaskList

urlpatterns = [
    path("", TaskList.as_view(), name="task-list"),
    path("bulk/", TaskBulkCreate.as_view(), name="task-bulk-create"),
    path("<int:pk>/", TaskDetail.as_view(), name="task-detail"),
    path("<int:pk>/steps/", StepList.as_view(), name="step-list"),
    path("<int:pk>/steps/<int:step_id>/", StepDetail.as_view(), name="step-detail"),
]
