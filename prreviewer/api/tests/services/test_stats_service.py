from django.test import TestCase
from prreviewer.api.models import Team, User, PullRequest, ReviewAssignment
from prreviewer.api.services import StatsService


class StatsServiceTest(TestCase):
    def setUp(self):
        team = Team.objects.create(name="backend")
        self.alice = User.objects.create(id="alice", username="Alice", team=team)
        User.objects.create(id="bob", username="Bob", team=team)
        User.objects.create(id="charlie", username="Charlie", team=team)
        User.objects.create(id="idle", username="Idle", team=team)

        PullRequest.objects.create(id="pr-1", name="First", author=self.alice)
        PullRequest.objects.create(id="pr-2", name="Second", author=self.alice)
        PullRequest.objects.create(
            id="pr-3", name="Third", author=self.alice, status=PullRequest.Status.MERGED
        )
        PullRequest.objects.create(id="pr-4", name="Nobody", author=self.alice)

        ReviewAssignment.objects.add_reviewers("pr-1", ["bob", "charlie"])
        ReviewAssignment.objects.add_reviewers("pr-2", ["bob"])
        ReviewAssignment.objects.add_reviewers("pr-3", ["bob", "charlie"])

    def test_review_counts_by_user(self):
        """Тест количества ревью по пользователям"""
        stats = StatsService.get_review_stats()

        by_user = {row["id"]: row for row in stats["by_user"]}
        self.assertEqual(set(by_user), {"bob", "charlie"})
        self.assertEqual(by_user["bob"]["review_count"], 3)
        self.assertEqual(by_user["bob"]["open_review_count"], 2)
        self.assertEqual(by_user["bob"]["merged_review_count"], 1)
        self.assertEqual(by_user["bob"]["team_id"], "backend")
        self.assertEqual(by_user["charlie"]["review_count"], 2)

        # Самые загруженные первыми
        self.assertEqual(stats["by_user"][0]["id"], "bob")

    def test_reviewer_counts_by_pr(self):
        """Тест количества ревьюверов по PR (PR без ревьюверов не выводятся)"""
        stats = StatsService.get_review_stats()

        self.assertEqual(
            [(row["id"], row["reviewer_count"]) for row in stats["by_pr"]],
            [("pr-1", 2), ("pr-2", 1), ("pr-3", 2)],
        )

    def test_empty_stats(self):
        """Тест статистики без назначений"""
        ReviewAssignment.objects.all().delete()

        self.assertEqual(StatsService.get_review_stats(), {"by_user": [], "by_pr": []})
