# courses/admin.py

from django.contrib import admin

from courses.models import Course, CoursePricing, CourseStudent, CourseType, Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("name", "contact_email", "is_active", "created_at")
    search_fields = ("name", "contact_email")
    list_filter = ("is_active",)


@admin.register(CourseType)
class CourseTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active")
    search_fields = ("name",)


@admin.register(CoursePricing)
class CoursePricingAdmin(admin.ModelAdmin):
    list_display = ("organization", "course_type", "price_per_student", "is_active")
    list_filter = ("is_active", "course_type")


class CourseStudentInline(admin.TabularInline):
    model = CourseStudent
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "organization",
        "course_type",
        "status",
        "ready_for_billing",
        "invoiced",
        "completed_at",
    )
    # Invoicing flags belong to the billing ledger.
    readonly_fields = (
        "ready_for_billing",
        "ready_for_billing_at",
        "invoiced",
        "invoiced_at",
    )
    list_filter = ("status", "invoiced", "ready_for_billing")
    inlines = [CourseStudentInline]
