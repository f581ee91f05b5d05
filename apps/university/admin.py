"""
Django admin configuration for University app.
"""
from django.contrib import admin
from .models import Course, Section, Video, RoleContentAccess


class SectionInline(admin.TabularInline):
    model = Section
    extra = 0
    fields = ['position', 'title']
    ordering = ['position']


class VideoInline(admin.TabularInline):
    model = Video
    extra = 0
    fields = ['position', 'title', 'url', 'duration_seconds', 'is_preview']
    ordering = ['position']


class RoleContentAccessInline(admin.TabularInline):
    model = RoleContentAccess
    extra = 0
    fields = ['tenant_role', 'section_limit']
    raw_id_fields = ['tenant_role', 'section_limit']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['title', 'tenant__name']
    inlines = [SectionInline, RoleContentAccessInline]


@admin.register(Section)
class SectionAdmin(admin.ModelAdmin):
    list_display = ['title', 'course', 'position']
    search_fields = ['title', 'course__title']
    inlines = [VideoInline]
