"""
University models.

Implements:
- Course (tenant-owned course)
- Section (ordered part of a course; positions may be resorted)
- Video (ordered content of a section)
- RoleContentAccess (which tenant roles may see a course, and up to where)
"""
from django.core.exceptions import ValidationError
from django.db import models
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet, TimestampedModel


class CourseManager(BaseModelManager.from_queryset(BaseModelQuerySet)):
    """Manager for tenant-scoped course queries."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def published(self):
        return self.filter(status='published')


class Course(BaseModel):
    """
    A course of the tenant's university.
    """

    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('published', 'Published'),
        ('archived', 'Archived'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='courses',
        db_index=True,
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='draft',
        db_index=True,
    )

    objects = CourseManager()

    class Meta:
        db_table = 'courses'
        ordering = ['title']

    def __str__(self):
        return self.title


class Section(TimestampedModel):
    """
    Ordered section of a course.

    ``position`` is unique within the course and can be rewritten by
    ContentAccessService.reorder_sections; access limits point at the section
    itself, never at its position.
    """

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='sections',
    )
    title = models.CharField(max_length=255)
    position = models.PositiveIntegerField(
        help_text="Order within the course (1-based)"
    )

    class Meta:
        db_table = 'course_sections'
        ordering = ['course', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['course', 'position'],
                name='course_sections_position_uniq',
            ),
        ]

    def __str__(self):
        return f"{self.position}. {self.title}"


class Video(TimestampedModel):
    """A video inside a section."""

    section = models.ForeignKey(
        Section,
        on_delete=models.CASCADE,
        related_name='videos',
    )
    title = models.CharField(max_length=255)
    url = models.URLField(blank=True)
    duration_seconds = models.PositiveIntegerField(default=0)
    position = models.PositiveIntegerField()
    is_preview = models.BooleanField(
        default=False,
        help_text="Preview videos are shown in the outline of locked sections"
    )

    class Meta:
        db_table = 'course_videos'
        ordering = ['section', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['section', 'position'],
                name='course_videos_position_uniq',
            ),
        ]

    def __str__(self):
        return self.title


class RoleContentAccessManager(models.Manager):

    def for_course(self, course):
        return self.filter(course=course, tenant_role__deleted_at__isnull=True)


class RoleContentAccess(TimestampedModel):
    """
    Access of one tenant role to one course.

    No row: the role cannot see the course. ``section_limit`` empty: the
    whole course. Otherwise every section up to and including the limit, by
    current position. Deleting the limit section deletes the row, so the
    role falls back to no access rather than to the whole course.
    """

    tenant_role = models.ForeignKey(
        'rbac.TenantRole',
        on_delete=models.CASCADE,
        related_name='content_access',
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='role_access',
    )
    section_limit = models.ForeignKey(
        Section,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='access_limits',
        help_text="Last section the role may see; empty for the whole course"
    )

    objects = RoleContentAccessManager()

    class Meta:
        db_table = 'role_content_access'
        unique_together = [('tenant_role', 'course')]

    def __str__(self):
        return f"{self.tenant_role_id} -> {self.course_id} (limit {self.section_limit_id})"

    @property
    def is_unrestricted(self):
        return self.section_limit_id is None

    def clean(self):
        if self.section_limit_id and self.section_limit.course_id != self.course_id:
            raise ValidationError({'section_limit': 'Section belongs to a different course.'})
