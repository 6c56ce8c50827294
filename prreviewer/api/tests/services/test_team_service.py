from django.db.models.query import QuerySet
from django.test import TestCase
from unittest.mock import patch
from prreviewer.api.errors import ErrorCode, ServiceError
from prreviewer.api.models import Team, User, PullRequest, ReviewAssignment
from prreviewer.api.selection import CandidateSelector
from prreviewer.api.services import TeamService


class TeamServiceTest(TestCase):
    def setUp(self):
        self.team_name = "backend"
        self.members_data = [
            {"user_id": "u1", "username": "Alice", "is_active": True},
            {"user_id": "u2", "username": "Bob", "is_active": True},
            {"user_id": "u3", "username": "Charlie", "is_active": False},
        ]

    def test_create_team_with_members_success(self):
        """Тест успешного создания команды с пользователями"""
        team = TeamService.create_team_with_members(self.team_name, self.members_data)

        self.assertEqual(team.name, self.team_name)
        self.assertEqual(team.members.count(), 3)

        # Проверяем созданных пользователей
        user1 = User.objects.get(id="u1")
        self.assertEqual(user1.username, "Alice")
        self.assertTrue(user1.is_active)
        self.assertEqual(user1.team, team)
        self.assertFalse(User.objects.get(id="u3").is_active)

    def test_create_team_duplicate(self):
        """Тест создания дубликата команды"""
        TeamService.create_team_with_members(self.team_name, self.members_data)

        with self.assertRaises(ServiceError) as context:
            TeamService.create_team_with_members(self.team_name, [])

        self.assertEqual(context.exception.code, ErrorCode.TEAM_EXISTS)
        self.assertEqual(context.exception.message, "team_name already exists")

    def test_create_team_duplicate_with_members_changes_nothing(self):
        """Тест: повторное создание команды не трогает пользователей"""
        TeamService.create_team_with_members(self.team_name, self.members_data)

        with self.assertRaises(ServiceError):
            TeamService.create_team_with_members(self.team_name, [
                {"user_id": "u1", "username": "Renamed", "is_active": False},
            ])

        self.assertEqual(User.objects.get(id="u1").username, "Alice")

    def test_create_team_duplicate_insert_race(self):
        """Тест: команда, пропущенная проверкой существования, ловится первичным ключом"""
        Team.objects.create(name=self.team_name)

        # Проверка exists() "не видит" параллельно созданную команду
        with patch.object(QuerySet, 'exists', return_value=False):
            with self.assertRaises(ServiceError) as context:
                TeamService.create_team_with_members(self.team_name, self.members_data)

        self.assertEqual(context.exception.code, ErrorCode.TEAM_EXISTS)
        self.assertEqual(User.objects.count(), 0)

    def test_create_team_empty_members(self):
        """Тест создания команды без пользователей"""
        team = TeamService.create_team_with_members("empty_team", [])

        self.assertEqual(team.name, "empty_team")
        self.assertEqual(team.members.count(), 0)

    def test_create_team_moves_existing_user(self):
        """Тест: пользователь из другой команды переносится (upsert)"""
        TeamService.create_team_with_members("frontend", [
            {"user_id": "u1", "username": "Old Name", "is_active": False},
        ])

        TeamService.create_team_with_members(self.team_name, self.members_data)

        user = User.objects.get(id="u1")
        self.assertEqual(user.team_id, self.team_name)
        self.assertEqual(user.username, "Alice")
        self.assertTrue(user.is_active)
        self.assertEqual(Team.objects.get(name="frontend").members.count(), 0)

    def test_get_team_with_members_success(self):
        """Тест успешного получения команды с пользователями"""
        TeamService.create_team_with_members(self.team_name, self.members_data)

        team = TeamService.get_team_with_members(self.team_name)

        self.assertEqual(team.name, self.team_name)
        self.assertEqual(team.members.count(), 3)

    def test_get_team_with_members_not_found(self):
        """Тест получения несуществующей команды"""
        with self.assertRaises(ServiceError) as context:
            TeamService.get_team_with_members("nonexistent")

        self.assertEqual(context.exception.code, ErrorCode.NOT_FOUND)

    def test_create_or_update_user_new_user(self):
        """Тест создания нового пользователя"""
        team = Team.objects.create(name="test_team")
        member_data = {"user_id": "new_user", "username": "New User", "is_active": True}

        user = TeamService._create_or_update_user(team, member_data)

        self.assertEqual(user.id, "new_user")
        self.assertEqual(user.username, "New User")
        self.assertTrue(user.is_active)
        self.assertEqual(user.team, team)


class BulkDeactivateTest(TestCase):
    def setUp(self):
        TeamService.create_team_with_members("backend", [
            {"user_id": user_id, "username": user_id.title(), "is_active": True}
            for user_id in ["alice", "bob", "charlie", "dave", "erin"]
        ])
        self.author = User.objects.get(id="alice")

        patcher = patch.object(TeamService, 'selector', CandidateSelector.with_seed(99))
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create_pr(self, pr_id, reviewer_ids, status=PullRequest.Status.OPEN):
        PullRequest.objects.create(id=pr_id, name="Test PR", author=self.author, status=status)
        ReviewAssignment.objects.add_reviewers(pr_id, reviewer_ids)

    def _reviewers(self, pr_id):
        return set(ReviewAssignment.objects.for_pr(pr_id).values_list("reviewer_id", flat=True))

    def test_deactivates_and_reassigns_open_prs(self):
        """Тест: ревьюверы открытых PR заменяются активными участниками"""
        self._create_pr("pr-1", ["bob", "charlie"])

        users, replacements = TeamService.bulk_deactivate_team_members("backend", ["bob"])

        self.assertEqual([user.id for user in users], ["bob"])
        self.assertFalse(User.objects.get(id="bob").is_active)

        reviewers = self._reviewers("pr-1")
        self.assertEqual(len(reviewers), 2)
        self.assertNotIn("bob", reviewers)
        self.assertNotIn("alice", reviewers)
        self.assertIn("charlie", reviewers)
        self.assertEqual(len(replacements), 1)
        self.assertEqual(replacements[0]["old_user_id"], "bob")
        self.assertIn(replacements[0]["new_user_id"], {"dave", "erin"})

    def test_merged_prs_are_untouched(self):
        """Тест: назначения смерженных PR не меняются"""
        self._create_pr("pr-1", ["bob", "charlie"], status=PullRequest.Status.MERGED)

        _, replacements = TeamService.bulk_deactivate_team_members("backend", ["bob"])

        self.assertEqual(replacements, [])
        self.assertEqual(self._reviewers("pr-1"), {"bob", "charlie"})

    def test_keeps_assignment_without_candidates(self):
        """Тест: если заменить некем, назначение остается"""
        self._create_pr("pr-1", ["bob", "charlie"])

        _, replacements = TeamService.bulk_deactivate_team_members(
            "backend", ["bob", "charlie", "dave", "erin"]
        )

        self.assertEqual(replacements, [])
        self.assertEqual(self._reviewers("pr-1"), {"bob", "charlie"})
        self.assertEqual(User.objects.filter(is_active=True).count(), 1)

    def test_deactivates_whole_team(self):
        """Тест: без списка user_ids деактивируется вся команда"""
        users, _ = TeamService.bulk_deactivate_team_members("backend")

        self.assertEqual(len(users), 5)
        self.assertFalse(User.objects.filter(is_active=True).exists())

    def test_unknown_team(self):
        """Тест деактивации в несуществующей команде"""
        with self.assertRaises(ServiceError) as context:
            TeamService.bulk_deactivate_team_members("nonexistent")

        self.assertEqual(context.exception.code, ErrorCode.NOT_FOUND)
