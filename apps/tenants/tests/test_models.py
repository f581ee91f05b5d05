"""
Tests for the Tenant model and soft delete behaviour.
"""
import pytest

from apps.tenants.models import Tenant


@pytest.mark.django_db
class TestTenant:

    def test_active_and_by_slug(self, tenant):
        Tenant.objects.create(name='Suspendida', slug='suspendida', status='suspended')

        assert list(Tenant.objects.active()) == [tenant]
        assert Tenant.objects.by_slug('test-tenant') == tenant
        assert tenant.is_active()

    def test_soft_delete(self, tenant):
        tenant.delete()

        assert tenant.is_deleted
        assert not Tenant.objects.filter(id=tenant.id).exists()
        assert Tenant.objects_with_deleted.filter(id=tenant.id).exists()

        tenant.restore()
        assert Tenant.objects.filter(id=tenant.id).exists()

    def test_queryset_delete_is_soft(self, tenant, other_tenant):
        Tenant.objects.all().delete()

        assert Tenant.objects.count() == 0
        assert Tenant.objects_with_deleted.count() == 2
