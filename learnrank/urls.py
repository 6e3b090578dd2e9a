"""
URL configuration for learnrank project.

The gamification engine is consumed in-process by the lesson, profile and
leaderboard views of the host application, so only the admin is routed here.
See https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path


urlpatterns = [
    path('admin/', admin.site.urls),
]
