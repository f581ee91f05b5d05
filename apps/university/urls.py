"""
University URL configuration.
"""
from django.urls import path
from apps.university import views

app_name = 'university'

COURSE = 'tenants/<uuid:tenant_id>/university/courses/<uuid:course_id>'

urlpatterns = [
    path(f'{COURSE}/role-access', views.CourseRoleAccessView.as_view(), name='course-role-access'),
    path(f'{COURSE}/role-access/<uuid:role_id>', views.CourseRoleAccessDetailView.as_view(), name='course-role-access-detail'),
    path(f'{COURSE}/roles/<uuid:role_id>/sections', views.RoleVisibleSectionsView.as_view(), name='role-visible-sections'),
    path(f'{COURSE}/roles/<uuid:role_id>/videos', views.RoleVisibleVideosView.as_view(), name='role-visible-videos'),
    path(f'{COURSE}/roles/<uuid:role_id>/outline', views.RoleCourseOutlineView.as_view(), name='role-course-outline'),
    path(f'{COURSE}/sections/reorder', views.CourseSectionReorderView.as_view(), name='course-section-reorder'),
]
