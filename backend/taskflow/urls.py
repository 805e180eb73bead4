from django.http import HttpResponse
from django.urls import include, path


def index(request):
    return HttpResponse("API is running", content_type="text/plain")


urlpatterns = [
    path("", index, name="index"),
    path("api/auth/", include("accounts.urls")),
    path("api/tasks/", include("tasks.urls")),
]
