from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from prreviewer.logging import get_logger

from .errors import ErrorCode, ServiceError
from .models import PullRequest, ReviewAssignment, Team, User
from .selection import CandidateSelector

logger = get_logger(__name__)

MAX_REVIEWERS_PER_PR = 2

# Общий для всех запросов генератор; seed задается через APP_RANDOM_SEED
default_selector = CandidateSelector.with_seed(getattr(settings, 'REVIEWER_RANDOM_SEED', None))


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    selector = default_selector

    @classmethod
    @transaction.atomic
    def create_team_with_members(cls, team_name: str, members_data: list) -> Team:
        """
        Создает команду и добавляет (или переносит) в нее пользователей

        Args:
            team_name: Название команды
            members_data: Список словарей user_id / username / is_active

        Raises:
            ServiceError: TEAM_EXISTS, если команда уже есть
        """
        if Team.objects.filter(name=team_name).exists():
            raise ServiceError(ErrorCode.TEAM_EXISTS, 'team_name already exists')

        # Проверка выше не защищает от гонки, окончательно решает первичный ключ
        try:
            with transaction.atomic():
                team = Team.objects.create(name=team_name)
        except IntegrityError:
            raise ServiceError(ErrorCode.TEAM_EXISTS, 'team_name already exists')

        for member_data in members_data:
            cls._create_or_update_user(team, member_data)

        logger.info('team_created', team_name=team_name, members=len(members_data))
        return team

    @classmethod
    def _create_or_update_user(cls, team: Team, member_data: dict) -> User:
        return User.objects.upsert(
            user_id=member_data['user_id'],
            username=member_data['username'],
            team=team,
            is_active=member_data.get('is_active', True),
        )

    @classmethod
    def get_team_with_members(cls, team_name: str) -> Team:
        try:
            return Team.objects.prefetch_related('members').get(name=team_name)
        except Team.DoesNotExist:
            raise ServiceError(ErrorCode.NOT_FOUND, f"team '{team_name}' not found")

    @classmethod
    @transaction.atomic
    def bulk_deactivate_team_members(cls, team_name: str, user_ids: list = None) -> tuple:
        """
        Массовая деактивация пользователей команды с переназначением открытых PR

        Каждый деактивируемый ревьювер открытого PR заменяется один к одному.
        Если заменить некем, назначение остается как есть.

        Returns:
            tuple: (деактивированные пользователи, список замен)
        """
        if not Team.objects.filter(name=team_name).exists():
            raise ServiceError(ErrorCode.NOT_FOUND, f"team '{team_name}' not found")

        users = User.objects.filter(team_id=team_name)
        if user_ids:
            users = users.filter(id__in=user_ids)
        deactivating_ids = set(users.values_list('id', flat=True))

        if not deactivating_ids:
            return [], []

        pr_ids = set(
            ReviewAssignment.objects
            .filter(reviewer_id__in=deactivating_ids)
            .values_list('pull_request_id', flat=True)
        )
        open_prs = list(
            PullRequest.objects.select_for_update()
            .filter(id__in=pr_ids, status=PullRequest.Status.OPEN)
            .order_by('id')
        )

        replacements = cls._safely_reassign_reviewers(open_prs, deactivating_ids, team_name)

        User.objects.filter(id__in=deactivating_ids).update(is_active=False, updated_at=timezone.now())

        logger.info(
            'team_members_deactivated',
            team_name=team_name,
            deactivated=len(deactivating_ids),
            reassigned=len(replacements),
        )
        return list(User.objects.filter(id__in=deactivating_ids).order_by('id')), replacements

    @classmethod
    def _safely_reassign_reviewers(cls, open_prs: list, deactivating_ids: set, team_name: str) -> list:
        replacements = []

        for pr in open_prs:
            current_ids = set(ReviewAssignment.objects.for_pr(pr.id).values_list('reviewer_id', flat=True))

            for old_id in sorted(current_ids & deactivating_ids):
                excluded = deactivating_ids | current_ids | {pr.author_id}
                candidates = cls.selector.select_candidates(team_name, excluded)
                if not candidates:
                    logger.warning('reviewer_kept_no_candidate', pr_id=pr.id, reviewer_id=old_id)
                    continue

                new_reviewer = cls.selector.pick_random(candidates, 1)[0]
                ReviewAssignment.objects.replace_reviewer(pr.id, old_id, new_reviewer.id)

                current_ids.discard(old_id)
                current_ids.add(new_reviewer.id)
                replacements.append({
                    'pull_request_id': pr.id,
                    'old_user_id': old_id,
                    'new_user_id': new_reviewer.id,
                })

        return replacements


class UserService:
    """
    Сервис для управления пользователями
    """

    @classmethod
    def get_user(cls, user_id: str) -> User:
        try:
            return User.objects.get(id=user_id)
        except User.DoesNotExist:
            raise ServiceError(ErrorCode.NOT_FOUND, f"user '{user_id}' not found")

    @classmethod
    @transaction.atomic
    def set_user_active_status(cls, user_id: str, is_active: bool) -> User:
        if not User.objects.set_active(user_id, is_active):
            raise ServiceError(ErrorCode.NOT_FOUND, f"user '{user_id}' not found")

        logger.info('user_active_changed', user_id=user_id, is_active=is_active)
        return User.objects.get(id=user_id)

    @classmethod
    def get_user_review_assignments(cls, user_id: str) -> list:
        """
        PR, где пользователь назначен ревьювером (новые первыми).
        Для неизвестного пользователя - пустой список.
        """
        return list(PullRequest.objects.reviewed_by(user_id))


class PullRequestService:
    """
    Сервис для управления Pull Request'ами
    """

    selector = default_selector
    max_reviewers = getattr(settings, 'MAX_REVIEWERS', 2)

    @classmethod
    def _get_pull_request(cls, pr_id: str, for_update: bool = False) -> PullRequest:
        queryset = PullRequest.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise ServiceError(ErrorCode.NOT_FOUND, f"PR '{pr_id}' not found")

    @classmethod
    @transaction.atomic
    def create_pull_request(cls, pr_id: str, pr_name: str, author_id: str) -> tuple:
        """
        Создает PR и назначает до двух ревьюверов из команды автора

        Returns:
            tuple: (PR, список назначенных ревьюверов, возможно пустой)

        Raises:
            ServiceError: PR_EXISTS или NOT_FOUND (нет автора)
        """
        if PullRequest.objects.filter(id=pr_id).exists():
            raise ServiceError(ErrorCode.PR_EXISTS, 'PR id already exists')

        try:
            author = User.objects.get(id=author_id)
        except User.DoesNotExist:
            raise ServiceError(ErrorCode.NOT_FOUND, f"author '{author_id}' not found")

        # Активные участники команды автора, кроме самого автора
        candidates = cls.selector.select_candidates(author.team_id, [author.id])
        reviewers = cls.selector.pick_random(candidates, min(cls.max_reviewers, MAX_REVIEWERS_PER_PR))

        try:
            with transaction.atomic():
                pr = PullRequest.objects.create(id=pr_id, name=pr_name, author=author)
        except IntegrityError:
            raise ServiceError(ErrorCode.PR_EXISTS, 'PR id already exists')

        ReviewAssignment.objects.add_reviewers(pr.id, [reviewer.id for reviewer in reviewers])

        logger.info(
            'pull_request_created',
            pr_id=pr.id,
            author_id=author.id,
            reviewers=[reviewer.id for reviewer in reviewers],
        )
        return pr, reviewers

    @classmethod
    @transaction.atomic
    def merge_pull_request(cls, pr_id: str) -> PullRequest:
        """
        Помечает PR как MERGED. Повторный мерж возвращает PR без изменений.
        """
        pr = cls._get_pull_request(pr_id)
        if pr.is_merged:
            return pr

        # Обновление только из OPEN: из параллельных мержей сработает один
        if PullRequest.objects.set_merged_if_open(pr_id, timezone.now()):
            logger.info('pull_request_merged', pr_id=pr_id)
        else:
            logger.debug('pull_request_merge_lost_race', pr_id=pr_id)

        pr.refresh_from_db()
        return pr

    @classmethod
    @transaction.atomic
    def reassign_reviewer(cls, pr_id: str, old_user_id: str) -> tuple:
        """
        Заменяет ревьювера old_user_id случайным активным участником его команды

        Returns:
            tuple: (PR, новый ревьювер)

        Raises:
            ServiceError: NOT_FOUND, PR_MERGED, NOT_ASSIGNED или NO_CANDIDATE
        """
        pr = cls._get_pull_request(pr_id, for_update=True)

        if pr.is_merged:
            raise ServiceError(ErrorCode.PR_MERGED, 'cannot reassign on merged PR')

        current_ids = set(ReviewAssignment.objects.for_pr(pr_id).values_list('reviewer_id', flat=True))
        if old_user_id not in current_ids:
            raise ServiceError(ErrorCode.NOT_ASSIGNED, 'reviewer is not assigned to this PR')

        try:
            old_reviewer = User.objects.get(id=old_user_id)
        except User.DoesNotExist:
            raise ServiceError(ErrorCode.NOT_FOUND, f"user '{old_user_id}' not found")

        # Исключаем всех текущих ревьюверов PR и автора
        excluded = current_ids | {pr.author_id}
        candidates = cls.selector.select_candidates(old_reviewer.team_id, excluded)
        if not candidates:
            raise ServiceError(ErrorCode.NO_CANDIDATE, 'no active replacement candidate in team')

        new_reviewer = cls.selector.pick_random(candidates, 1)[0]

        if not ReviewAssignment.objects.replace_reviewer(pr_id, old_user_id, new_reviewer.id):
            raise ServiceError(ErrorCode.NOT_ASSIGNED, 'reviewer is not assigned to this PR')

        logger.info(
            'reviewer_reassigned',
            pr_id=pr_id,
            old_reviewer_id=old_user_id,
            new_reviewer_id=new_reviewer.id,
        )
        return pr, new_reviewer

    @classmethod
    def get_reviewers(cls, pr_id: str) -> list:
        cls._get_pull_request(pr_id)
        return [
            assignment.reviewer
            for assignment in ReviewAssignment.objects.for_pr(pr_id).select_related('reviewer')
        ]


class StatsService:
    """
    Сервис для сбора статистики
    """

    @classmethod
    def get_review_stats(cls) -> dict:
        """
        Returns:
            dict: by_user - пользователи хотя бы с одним ревью,
                  by_pr - PR хотя бы с одним ревьювером
        """
        user_review_stats = User.objects.with_review_counts().values(
            'id', 'username', 'team_id',
            'review_count', 'open_review_count', 'merged_review_count',
        )

        pr_reviewer_stats = PullRequest.objects.with_reviewer_counts().values('id', 'reviewer_count')

        return {
            'by_user': list(user_review_stats),
            'by_pr': list(pr_reviewer_stats),
        }
