"""
Content access services.

Implements ContentAccessService: per-role access to courses (whole course or
up to a section), resolution of the sections and videos a role may see, and
section reordering.
"""
import logging
from typing import List, Optional, Sequence

from django.db import transaction
from django.db.models import Max

from apps.core.exceptions import ValidationError, NotFound
from apps.rbac.models import TenantRole, AuditLog
from apps.rbac.services import _parse_uuid
from apps.university.models import Course, Section, Video, RoleContentAccess

logger = logging.getLogger(__name__)


class ContentAccessService:
    """
    Gate between tenant roles and ordered course content.

    A limit is stored as a section id and turned into a position only when
    read, so resorting sections moves the cut-off with the section.
    """

    @classmethod
    def get_course(cls, course_id, tenant_id=None) -> Course:
        """Course by id, optionally required to belong to ``tenant_id``."""
        qs = Course.objects.filter(id=_parse_uuid(course_id, 'Course'))
        if tenant_id is not None:
            qs = qs.filter(tenant_id=_parse_uuid(tenant_id, 'Tenant'))
        course = qs.first()
        if course is None:
            raise NotFound(f"Course '{course_id}' not found", details={'course_id': str(course_id)})
        return course

    @classmethod
    def _get_role(cls, course, role_id) -> TenantRole:
        role = TenantRole.objects.filter(
            id=_parse_uuid(role_id, 'Role'), tenant_id=course.tenant_id
        ).first()
        if role is None:
            raise NotFound(f"Role '{role_id}' not found", details={'role_id': str(role_id)})
        return role

    @classmethod
    def _get_access(cls, course_id, role_id) -> Optional[RoleContentAccess]:
        return RoleContentAccess.objects.filter(
            course_id=_parse_uuid(course_id, 'Course'),
            tenant_role_id=_parse_uuid(role_id, 'Role'),
            tenant_role__deleted_at__isnull=True,
            course__deleted_at__isnull=True,
        ).first()

    @classmethod
    def set_access(cls, course_id, role_id, section_limit_id=None, tenant_id=None,
                   actor_id=None) -> RoleContentAccess:
        """
        Grant a role access to a course.

        ``section_limit_id`` None opens the whole course; otherwise the role
        sees sections up to and including that one. Replaces any earlier
        access of the role to the course.
        """
        course = cls.get_course(course_id, tenant_id)
        role = cls._get_role(course, role_id)

        section = None
        if section_limit_id is not None:
            section = Section.objects.filter(id=_parse_uuid(section_limit_id, 'Section')).first()
            if section is None:
                raise NotFound(
                    f"Section '{section_limit_id}' not found",
                    details={'section_id': str(section_limit_id)}
                )
            if section.course_id != course.id:
                raise ValidationError(
                    f"Section '{section.title}' belongs to a different course",
                    details={'section_id': str(section.id), 'course_id': str(course.id)},
                    items=[{'field': 'section_limit_id', 'message': 'Section belongs to a different course'}],
                )

        with transaction.atomic():
            access, created = RoleContentAccess.objects.update_or_create(
                tenant_role=role,
                course=course,
                defaults={'section_limit': section},
            )
            AuditLog.log_action(
                action='content_access_set',
                tenant=course.tenant,
                actor_id=actor_id,
                target_type='Course',
                target_id=course.id,
                diff={
                    'role_id': str(role.id),
                    'section_limit_id': str(section.id) if section else None,
                    'created': created,
                },
            )

        logger.info(
            f"Content access set for role {role.code} on course {course.id}",
            extra={'tenant_id': course.tenant_id, 'role_id': str(role.id)}
        )
        return access

    @classmethod
    def remove_access(cls, course_id, role_id, tenant_id=None, actor_id=None) -> bool:
        """Take a role's access to a course away. Returns False if it had none."""
        course = cls.get_course(course_id, tenant_id)
        with transaction.atomic():
            deleted, _ = RoleContentAccess.objects.filter(
                course=course, tenant_role_id=_parse_uuid(role_id, 'Role')
            ).delete()
            if deleted:
                AuditLog.log_action(
                    action='content_access_removed',
                    tenant=course.tenant,
                    actor_id=actor_id,
                    target_type='Course',
                    target_id=course.id,
                    diff={'role_id': str(role_id)},
                )
        return bool(deleted)

    @classmethod
    def list_access(cls, course_id, tenant_id=None) -> List[dict]:
        """
        Access rows of a course with role names and the limit's current position.
        """
        course = cls.get_course(course_id, tenant_id)
        rows = (
            RoleContentAccess.objects.for_course(course)
            .select_related('tenant_role', 'section_limit')
            .order_by('tenant_role__name')
        )
        return [
            {
                'role_id': row.tenant_role_id,
                'role_name': row.tenant_role.name,
                'role_code': row.tenant_role.code,
                'section_limit_id': row.section_limit_id,
                'section_limit_title': row.section_limit.title if row.section_limit else None,
                'section_limit_position': row.section_limit.position if row.section_limit else None,
            }
            for row in rows
        ]

    @classmethod
    def resolve_visible_sections(cls, course_id, role_id) -> List[Section]:
        """
        Sections of a course the role may see, ordered by position.

        Empty when the role has no access row for the course.
        """
        access = cls._get_access(course_id, role_id)
        if access is None:
            return []

        sections = Section.objects.filter(course_id=access.course_id).order_by('position')
        if access.section_limit_id is not None:
            limit_position = (
                Section.objects.filter(id=access.section_limit_id)
                .values_list('position', flat=True)
                .first()
            )
            if limit_position is None:
                return []
            sections = sections.filter(position__lte=limit_position)
        return list(sections)

    @classmethod
    def resolve_visible_videos(cls, course_id, role_id) -> List[Video]:
        """Videos of the visible sections, by section then video position."""
        sections = cls.resolve_visible_sections(course_id, role_id)
        if not sections:
            return []
        return list(
            Video.objects.filter(section__in=sections)
            .select_related('section')
            .order_by('section__position', 'position')
        )

    @classmethod
    def course_outline(cls, course_id, role_id, tenant_id=None) -> dict:
        """
        Every section of the course flagged with whether the role may open it.
        """
        course = cls.get_course(course_id, tenant_id)
        visible = {section.id for section in cls.resolve_visible_sections(course.id, role_id)}
        sections = list(course.sections.order_by('position').prefetch_related('videos'))
        return {
            'course': course,
            'sections': [
                {'section': section, 'has_access': section.id in visible}
                for section in sections
            ],
            'accessible_sections': len(visible),
            'total_sections': len(sections),
        }

    @classmethod
    def reorder_sections(cls, course_id, section_ids: Sequence, tenant_id=None) -> List[Section]:
        """
        Rewrite section positions to follow ``section_ids`` (1-based).

        ``section_ids`` must list every section of the course exactly once.
        """
        course = cls.get_course(course_id, tenant_id)
        wanted = [_parse_uuid(section_id, 'Section') for section_id in section_ids]
        current = set(course.sections.values_list('id', flat=True))
        if len(wanted) != len(set(wanted)) or set(wanted) != current:
            raise ValidationError(
                'Section order must list every section of the course exactly once',
                details={'course_id': str(course.id)},
                items=[{'field': 'section_ids', 'message': 'Incomplete or duplicated section list'}],
            )

        with transaction.atomic():
            # Park every section above the current maximum first so the
            # (course, position) constraint holds after each single update.
            offset = (course.sections.aggregate(top=Max('position'))['top'] or 0) + 1
            for index, section_id in enumerate(wanted):
                Section.objects.filter(id=section_id).update(position=offset + index)
            for index, section_id in enumerate(wanted, start=1):
                Section.objects.filter(id=section_id).update(position=index)

        logger.info(
            f"Sections of course {course.id} reordered",
            extra={'tenant_id': course.tenant_id}
        )
        return list(course.sections.order_by('position'))
