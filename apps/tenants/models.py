"""
Tenant models for multi-tenant isolation.

A tenant is an isolated customer organization. Roles, permission rows and
course access all hang off a tenant and never cross tenant boundaries.
"""
from django.db import models
from apps.core.models import BaseModelManager, BaseModelQuerySet, BaseModel


class TenantManager(BaseModelManager.from_queryset(BaseModelQuerySet)):
    """Manager for tenant-scoped queries."""

    def active(self):
        """Return only active tenants."""
        return self.filter(status__in=['active', 'trial'])

    def by_slug(self, slug):
        """Find tenant by slug."""
        return self.filter(slug=slug).first()


class Tenant(BaseModel):
    """
    Tenant model representing an isolated organization account.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('trial', 'Free Trial'),
        ('suspended', 'Suspended'),
        ('canceled', 'Canceled'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='trial',
        db_index=True,
        help_text="Current tenant status"
    )

    # Custom manager
    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='tenants_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def is_active(self):
        """Check if tenant can currently use the platform."""
        return self.status in ('active', 'trial')
