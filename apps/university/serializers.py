"""
University serializers for REST API endpoints.
"""
from rest_framework import serializers
from apps.university.models import Course, Section, Video


class VideoSerializer(serializers.ModelSerializer):
    """Serializer for Video model."""

    class Meta:
        model = Video
        fields = ['id', 'title', 'url', 'duration_seconds', 'position', 'is_preview']
        read_only_fields = fields


class SectionSerializer(serializers.ModelSerializer):
    """Serializer for Section model, with its videos."""

    videos = VideoSerializer(many=True, read_only=True)

    class Meta:
        model = Section
        fields = ['id', 'title', 'position', 'videos']
        read_only_fields = fields


class CourseSerializer(serializers.ModelSerializer):

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'status']
        read_only_fields = fields


class RoleAccessSerializer(serializers.Serializer):
    """Read shape of one role's access to a course."""

    role_id = serializers.UUIDField()
    role_name = serializers.CharField()
    role_code = serializers.CharField()
    section_limit_id = serializers.UUIDField(allow_null=True)
    section_limit_title = serializers.CharField(allow_null=True)
    section_limit_position = serializers.IntegerField(allow_null=True)


class SetRoleAccessSerializer(serializers.Serializer):
    """Body of the set-access call. ``section_limit_id`` null opens the whole course."""

    role_id = serializers.UUIDField()
    section_limit_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class ReorderSectionsSerializer(serializers.Serializer):

    section_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
    )


class OutlineSectionSerializer(serializers.Serializer):
    """
    Outline entry. Locked sections only list their preview videos.
    """

    id = serializers.UUIDField(source='section.id')
    title = serializers.CharField(source='section.title')
    position = serializers.IntegerField(source='section.position')
    has_access = serializers.BooleanField()
    videos = serializers.SerializerMethodField()

    def get_videos(self, obj):
        videos = obj['section'].videos.all()
        if not obj['has_access']:
            videos = [video for video in videos if video.is_preview]
        return VideoSerializer(videos, many=True).data
