from django.urls import include, path

urlpatterns = [
    path("", include("notifier.urls")),
]
