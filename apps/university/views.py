"""
University REST API views.

Course access per tenant role: who may see a course and up to which section,
and what a given role gets to see.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.middleware import get_actor_id
from apps.university.services import ContentAccessService
from apps.university.serializers import (
    CourseSerializer, SectionSerializer, VideoSerializer, RoleAccessSerializer,
    SetRoleAccessSerializer, ReorderSectionsSerializer, OutlineSectionSerializer
)


@extend_schema_view(
    get=extend_schema(
        tags=['University - Access'],
        summary='List course access',
        description='Roles with access to the course and the section each one is limited to.',
        responses={200: RoleAccessSerializer(many=True), 404: OpenApiTypes.OBJECT},
    ),
    post=extend_schema(
        tags=['University - Access'],
        summary='Set course access',
        description='''
Give a role access to the course. `section_limit_id` null (or omitted) opens
the whole course; otherwise the role sees every section up to and including
that one, following the current section order. Replaces any previous access
of the role to the course.
        ''',
        request=SetRoleAccessSerializer,
        responses={200: RoleAccessSerializer(many=True), 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Limit to a section',
                value={
                    'role_id': '123e4567-e89b-12d3-a456-426614174000',
                    'section_limit_id': '9b2f6a70-3c1d-4e0b-8f57-2d7c1c0e9a11'
                },
                request_only=True
            )
        ]
    ),
)
class CourseRoleAccessView(APIView):
    """
    GET  /v1/tenants/{tenant_id}/university/courses/{course_id}/role-access
    POST /v1/tenants/{tenant_id}/university/courses/{course_id}/role-access
    """

    def get(self, request, tenant_id, course_id):
        rows = ContentAccessService.list_access(course_id, tenant_id=tenant_id)
        return Response({
            'count': len(rows),
            'access': RoleAccessSerializer(rows, many=True).data
        })

    def post(self, request, tenant_id, course_id):
        serializer = SetRoleAccessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        ContentAccessService.set_access(
            course_id,
            data['role_id'],
            section_limit_id=data.get('section_limit_id'),
            tenant_id=tenant_id,
            actor_id=get_actor_id(request),
        )
        rows = ContentAccessService.list_access(course_id, tenant_id=tenant_id)
        return Response({
            'count': len(rows),
            'access': RoleAccessSerializer(rows, many=True).data
        })


@extend_schema_view(
    delete=extend_schema(
        tags=['University - Access'],
        summary='Remove course access',
        responses={204: None, 404: OpenApiTypes.OBJECT},
    )
)
class CourseRoleAccessDetailView(APIView):
    """
    DELETE /v1/tenants/{tenant_id}/university/courses/{course_id}/role-access/{role_id}
    """

    def delete(self, request, tenant_id, course_id, role_id):
        ContentAccessService.remove_access(
            course_id, role_id, tenant_id=tenant_id, actor_id=get_actor_id(request)
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['University - Content'],
        summary='Visible sections',
        description='Sections (with videos) the role may see, in order. Empty without access.',
        responses={200: SectionSerializer(many=True), 404: OpenApiTypes.OBJECT},
    )
)
class RoleVisibleSectionsView(APIView):
    """
    GET /v1/tenants/{tenant_id}/university/courses/{course_id}/roles/{role_id}/sections
    """

    def get(self, request, tenant_id, course_id, role_id):
        course = ContentAccessService.get_course(course_id, tenant_id=tenant_id)
        sections = ContentAccessService.resolve_visible_sections(course.id, role_id)
        return Response({
            'course_id': str(course.id),
            'role_id': str(role_id),
            'count': len(sections),
            'sections': SectionSerializer(sections, many=True).data
        })


@extend_schema_view(
    get=extend_schema(
        tags=['University - Content'],
        summary='Visible videos',
        description='Videos the role may watch, ordered by section then video position.',
        responses={200: VideoSerializer(many=True), 404: OpenApiTypes.OBJECT},
    )
)
class RoleVisibleVideosView(APIView):
    """
    GET /v1/tenants/{tenant_id}/university/courses/{course_id}/roles/{role_id}/videos
    """

    def get(self, request, tenant_id, course_id, role_id):
        course = ContentAccessService.get_course(course_id, tenant_id=tenant_id)
        videos = ContentAccessService.resolve_visible_videos(course.id, role_id)
        return Response({
            'course_id': str(course.id),
            'role_id': str(role_id),
            'count': len(videos),
            'videos': [
                {**VideoSerializer(video).data, 'section_id': str(video.section_id)}
                for video in videos
            ]
        })


@extend_schema_view(
    get=extend_schema(
        tags=['University - Content'],
        summary='Course outline for a role',
        description='''
Every section of the course with `has_access` for the role. Locked sections
only list their preview videos.
        ''',
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class RoleCourseOutlineView(APIView):
    """
    GET /v1/tenants/{tenant_id}/university/courses/{course_id}/roles/{role_id}/outline
    """

    def get(self, request, tenant_id, course_id, role_id):
        outline = ContentAccessService.course_outline(course_id, role_id, tenant_id=tenant_id)
        return Response({
            'course': CourseSerializer(outline['course']).data,
            'role_id': str(role_id),
            'accessible_sections': outline['accessible_sections'],
            'total_sections': outline['total_sections'],
            'sections': OutlineSectionSerializer(outline['sections'], many=True).data,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['University - Content'],
        summary='Reorder sections',
        description='''
Rewrite section positions following `section_ids` (every section of the
course exactly once). Access limits follow their section to its new place.
        ''',
        request=ReorderSectionsSerializer,
        responses={200: SectionSerializer(many=True), 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class CourseSectionReorderView(APIView):
    """
    POST /v1/tenants/{tenant_id}/university/courses/{course_id}/sections/reorder
    """

    def post(self, request, tenant_id, course_id):
        serializer = ReorderSectionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        sections = ContentAccessService.reorder_sections(
            course_id, serializer.validated_data['section_ids'], tenant_id=tenant_id
        )
        return Response({
            'course_id': str(course_id),
            'sections': SectionSerializer(sections, many=True).data
        })
