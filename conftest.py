"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', verbosity=0)


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant(db):
    """Create a test tenant."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Test Tenant',
        slug='test-tenant',
        status='active'
    )


@pytest.fixture
def other_tenant(db):
    """Create another test tenant for isolation tests."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Other Tenant',
        slug='other-tenant',
        status='active'
    )


@pytest.fixture
def modules(db):
    """Three modules keyed by code."""
    from apps.rbac.models import Module
    return {
        code: Module.objects.create(code=code, name=code.title(), category=category, position=position)
        for position, (code, category) in enumerate([
            ('contactos', 'crm'),
            ('propiedades', 'crm'),
            ('reportes', 'rendimiento'),
        ], start=1)
    }


@pytest.fixture
def asesor(db, modules):
    """
    Global role 'asesor'.

    contactos: view/create/edit, view up to team, edit up to own.
    propiedades: view only, up to all.
    reportes is outside the envelope.
    """
    from apps.rbac.models import GlobalRole, GlobalRolePermission
    role = GlobalRole.objects.create(code='asesor', name='Asesor', position=1)
    GlobalRolePermission.objects.create(
        global_role=role, module=modules['contactos'],
        can_view=True, can_create=True, can_edit=True, can_delete=False,
        max_scope_view='team', max_scope_edit='own',
    )
    GlobalRolePermission.objects.create(
        global_role=role, module=modules['propiedades'],
        can_view=True, max_scope_view='all', max_scope_edit='own',
    )
    return role


@pytest.fixture
def gerente(db, modules):
    """Global role 'gerente': everything on every module, scope all."""
    from apps.rbac.models import GlobalRole, GlobalRolePermission
    role = GlobalRole.objects.create(code='gerente', name='Gerente', position=2)
    for module in modules.values():
        GlobalRolePermission.objects.create(
            global_role=role, module=module,
            can_view=True, can_create=True, can_edit=True, can_delete=True,
            max_scope_view='all', max_scope_edit='all',
        )
    return role


@pytest.fixture
def tenant_role(db, tenant):
    """A tenant role without parent or permissions."""
    from apps.rbac.models import TenantRole
    return TenantRole.objects.create(tenant=tenant, name='Asesor Junior', code='asesor_junior')


@pytest.fixture
def course(db, tenant):
    """Course with sections A, B, C (positions 1..3), two videos each."""
    from apps.university.models import Course, Section, Video
    course = Course.objects.create(tenant=tenant, title='Onboarding', status='published')
    for position, title in enumerate(['A', 'B', 'C'], start=1):
        section = Section.objects.create(course=course, title=title, position=position)
        for video_position in (1, 2):
            Video.objects.create(
                section=section,
                title=f'{title}{video_position}',
                position=video_position,
                is_preview=video_position == 1,
            )
    return course


@pytest.fixture
def sections(course):
    """Sections of ``course`` keyed by title."""
    return {section.title: section for section in course.sections.all()}
