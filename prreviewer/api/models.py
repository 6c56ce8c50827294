from django.db import models
from django.db.models import Count, Q
from django.utils import timezone


class Team(models.Model):
    name = models.CharField(max_length=100, primary_key=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class UserQuerySet(models.QuerySet):
    def active_members_except(self, team_name: str, exclude_ids) -> 'UserQuerySet':
        """
        Активные участники команды, кроме пользователей из exclude_ids
        """
        return (
            self.filter(team_id=team_name, is_active=True)
            .exclude(id__in=list(exclude_ids))
            .order_by('id')
        )

    def upsert(self, user_id: str, username: str, team: 'Team', is_active: bool) -> 'User':
        user, _ = self.update_or_create(
            id=user_id,
            defaults={'username': username, 'team': team, 'is_active': is_active},
        )
        return user

    def set_active(self, user_id: str, is_active: bool) -> bool:
        return self.filter(id=user_id).update(is_active=is_active, updated_at=timezone.now()) > 0

    def with_review_counts(self):
        """
        Пользователи хотя бы с одним назначением и количеством ревью
        """
        return (
            self.annotate(
                review_count=Count('review_assignments'),
                open_review_count=Count(
                    'review_assignments',
                    filter=Q(review_assignments__pull_request__status='OPEN'),
                ),
                merged_review_count=Count(
                    'review_assignments',
                    filter=Q(review_assignments__pull_request__status='MERGED'),
                ),
            )
            .filter(review_count__gt=0)
            .order_by('-review_count', 'id')
        )


class User(models.Model):
    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserQuerySet.as_manager()

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['team', 'is_active'], name='users_team_active_idx'),
        ]


class PullRequestQuerySet(models.QuerySet):
    def set_merged_if_open(self, pr_id: str, merged_at) -> bool:
        """
        Переводит PR в MERGED, только если он еще OPEN.

        Returns:
            bool: False, если PR уже смержен (или не существует)
        """
        updated = self.filter(id=pr_id, status=PullRequest.Status.OPEN).update(
            status=PullRequest.Status.MERGED,
            merged_at=merged_at,
        )
        return updated > 0

    def reviewed_by(self, reviewer_id: str) -> 'PullRequestQuerySet':
        return (
            self.filter(review_assignments__reviewer_id=reviewer_id)
            .select_related('author')
            .order_by('-created_at', 'id')
        )

    def with_reviewer_counts(self):
        return (
            self.annotate(reviewer_count=Count('review_assignments'))
            .filter(reviewer_count__gt=0)
            .order_by('id')
        )


class PullRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        MERGED = 'MERGED', 'Merged'

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='ReviewAssignment',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    merged_at = models.DateTimeField(null=True, blank=True)

    objects = PullRequestQuerySet.as_manager()

    def clean(self):
        # merged_at задан тогда и только тогда, когда PR смержен
        if self.status == self.Status.MERGED and not self.merged_at:
            self.merged_at = timezone.now()
        elif self.status == self.Status.OPEN:
            self.merged_at = None

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    @property
    def is_merged(self) -> bool:
        return self.status == self.Status.MERGED

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'


class ReviewAssignmentQuerySet(models.QuerySet):
    def for_pr(self, pr_id: str) -> 'ReviewAssignmentQuerySet':
        return self.filter(pull_request_id=pr_id).order_by('assigned_at', 'reviewer_id')

    def add_reviewers(self, pr_id: str, reviewer_ids) -> list:
        now = timezone.now()
        return self.bulk_create([
            ReviewAssignment(pull_request_id=pr_id, reviewer_id=reviewer_id, assigned_at=now)
            for reviewer_id in reviewer_ids
        ])

    def replace_reviewer(self, pr_id: str, old_id: str, new_id: str) -> bool:
        """
        Заменяет ревьювера old_id на new_id.

        Должен вызываться внутри транзакции. Если удалять нечего (назначение
        уже сняли параллельно), ничего не вставляет и возвращает False.
        """
        deleted, _ = self.filter(pull_request_id=pr_id, reviewer_id=old_id).delete()
        if not deleted:
            return False
        self.create(pull_request_id=pr_id, reviewer_id=new_id, assigned_at=timezone.now())
        return True


class ReviewAssignment(models.Model):
    pull_request = models.ForeignKey(
        PullRequest, on_delete=models.CASCADE, related_name='review_assignments'
    )
    reviewer = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='review_assignments'
    )
    assigned_at = models.DateTimeField(default=timezone.now)

    objects = ReviewAssignmentQuerySet.as_manager()

    def __str__(self):
        return f"{self.reviewer_id} -> {self.pull_request_id}"

    class Meta:
        db_table = 'pr_reviewers'
        constraints = [
            models.UniqueConstraint(
                fields=['pull_request', 'reviewer'],
                name='unique_pr_reviewer',
            ),
        ]
