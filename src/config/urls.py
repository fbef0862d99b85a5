"""URL configuration for the logistics organisation service."""
from django.urls import include, path

urlpatterns = [
    path("api/v1/", include("api.urls")),
]
