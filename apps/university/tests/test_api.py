"""
API tests for University access endpoints.
"""
import uuid

import pytest
from django.urls import reverse

from apps.university.models import Course, Section, RoleContentAccess
from apps.university.services import ContentAccessService


@pytest.mark.django_db
class TestCourseRoleAccess:

    def url(self, course):
        return reverse('university:course-role-access', args=[course.tenant_id, course.id])

    def test_set_and_list(self, api_client, course, sections, tenant_role):
        response = api_client.post(
            self.url(course),
            {'role_id': str(tenant_role.id), 'section_limit_id': str(sections['B'].id)},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['count'] == 1
        row = response.data['access'][0]
        assert row['role_code'] == 'asesor_junior'
        assert row['section_limit_position'] == 2

        assert api_client.get(self.url(course)).data['count'] == 1

    def test_whole_course(self, api_client, course, tenant_role):
        response = api_client.post(
            self.url(course), {'role_id': str(tenant_role.id), 'section_limit_id': None}, format='json'
        )

        assert response.status_code == 200
        assert response.data['access'][0]['section_limit_id'] is None

    def test_limit_from_other_course(self, api_client, course, tenant, tenant_role):
        other = Course.objects.create(tenant=tenant, title='Ventas')
        foreign = Section.objects.create(course=other, title='X', position=1)

        response = api_client.post(
            self.url(course),
            {'role_id': str(tenant_role.id), 'section_limit_id': str(foreign.id)},
            format='json',
        )

        assert response.status_code == 400
        assert response.data['code'] == 'VALIDATION_ERROR'

    def test_unknown_role(self, api_client, course):
        response = api_client.post(self.url(course), {'role_id': str(uuid.uuid4())}, format='json')
        assert response.status_code == 404

    def test_course_of_other_tenant(self, api_client, course, other_tenant):
        response = api_client.get(
            reverse('university:course-role-access', args=[other_tenant.id, course.id])
        )
        assert response.status_code == 404

    def test_remove(self, api_client, course, tenant_role):
        ContentAccessService.set_access(course.id, tenant_role.id)

        response = api_client.delete(
            reverse('university:course-role-access-detail', args=[course.tenant_id, course.id, tenant_role.id])
        )

        assert response.status_code == 204
        assert not RoleContentAccess.objects.exists()


@pytest.mark.django_db
class TestRoleContent:

    def test_sections_without_access(self, api_client, course, tenant_role):
        response = api_client.get(
            reverse('university:role-visible-sections', args=[course.tenant_id, course.id, tenant_role.id])
        )

        assert response.status_code == 200
        assert response.data['count'] == 0
        assert response.data['sections'] == []

    def test_sections_with_limit(self, api_client, course, sections, tenant_role):
        ContentAccessService.set_access(course.id, tenant_role.id, section_limit_id=sections['B'].id)

        response = api_client.get(
            reverse('university:role-visible-sections', args=[course.tenant_id, course.id, tenant_role.id])
        )

        assert [s['title'] for s in response.data['sections']] == ['A', 'B']
        assert [v['title'] for v in response.data['sections'][0]['videos']] == ['A1', 'A2']

    def test_videos(self, api_client, course, sections, tenant_role):
        ContentAccessService.set_access(course.id, tenant_role.id, section_limit_id=sections['A'].id)

        response = api_client.get(
            reverse('university:role-visible-videos', args=[course.tenant_id, course.id, tenant_role.id])
        )

        assert [v['title'] for v in response.data['videos']] == ['A1', 'A2']
        assert response.data['videos'][0]['section_id'] == str(sections['A'].id)

    def test_outline_hides_locked_videos(self, api_client, course, sections, tenant_role):
        ContentAccessService.set_access(course.id, tenant_role.id, section_limit_id=sections['A'].id)

        response = api_client.get(
            reverse('university:role-course-outline', args=[course.tenant_id, course.id, tenant_role.id])
        )

        assert response.status_code == 200
        assert response.data['accessible_sections'] == 1
        locked = response.data['sections'][1]
        assert locked['has_access'] is False
        assert [v['title'] for v in locked['videos']] == ['B1']
        assert len(response.data['sections'][0]['videos']) == 2

    def test_reorder(self, api_client, course, sections, tenant_role):
        ContentAccessService.set_access(course.id, tenant_role.id, section_limit_id=sections['B'].id)

        response = api_client.post(
            reverse('university:course-section-reorder', args=[course.tenant_id, course.id]),
            {'section_ids': [str(sections[t].id) for t in ('C', 'A', 'B')]},
            format='json',
        )

        assert response.status_code == 200
        assert [s['title'] for s in response.data['sections']] == ['C', 'A', 'B']
        assert len(ContentAccessService.resolve_visible_sections(course.id, tenant_role.id)) == 3

    def test_reorder_incomplete(self, api_client, course, sections):
        response = api_client.post(
            reverse('university:course-section-reorder', args=[course.tenant_id, course.id]),
            {'section_ids': [str(sections['A'].id)]},
            format='json',
        )
        assert response.status_code == 400
