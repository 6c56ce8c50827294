from rest_framework import serializers
from .models import Team, User, PullRequest


class TeamMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'is_active']


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name')
    members = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = ['team_name', 'members']

    @staticmethod
    def get_members(obj):
        members = sorted(obj.members.all(), key=lambda user: user.id)
        return TeamMemberSerializer(members, many=True).data


class UserSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    team_name = serializers.CharField(source='team_id')
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'team_name', 'is_active']


class PullRequestSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()
    assigned_reviewers = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', format='%Y-%m-%dT%H:%M:%SZ')
    mergedAt = serializers.DateTimeField(source='merged_at', format='%Y-%m-%dT%H:%M:%SZ', allow_null=True)

    class Meta:
        model = PullRequest
        fields = [
            'pull_request_id', 'pull_request_name', 'author_id',
            'status', 'assigned_reviewers', 'createdAt', 'mergedAt'
        ]

    @staticmethod
    def get_assigned_reviewers(obj):
        return [
            assignment.reviewer_id
            for assignment in obj.review_assignments.order_by('assigned_at', 'reviewer_id')
        ]


class PullRequestShortSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()

    class Meta:
        model = PullRequest
        fields = ['pull_request_id', 'pull_request_name', 'author_id', 'status']


class ReplacementSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField()
    old_user_id = serializers.CharField()
    new_user_id = serializers.CharField()


class UserReviewStatsSerializer(serializers.Serializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    team_name = serializers.CharField(source='team_id')
    review_count = serializers.IntegerField()
    open_review_count = serializers.IntegerField()
    merged_review_count = serializers.IntegerField()


class PRReviewerStatsSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(source='id')
    reviewer_count = serializers.IntegerField()


class StatsSerializer(serializers.Serializer):
    by_user = UserReviewStatsSerializer(many=True)
    by_pr = PRReviewerStatsSerializer(many=True)
