# courses/apps.py

"""
COURSES APP CONFIG

Read-only master data consumed by billing:
organizations, course types, per-organization pricing,
completed courses and their attendance.
"""

from django.apps import AppConfig


class CoursesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "courses"
    verbose_name = "Courses & Organizations"
