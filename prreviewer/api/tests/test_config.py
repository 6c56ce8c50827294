import os
from unittest.mock import patch

from django.test import SimpleTestCase
from pydantic import ValidationError

from prreviewer.config import AppConfig


class AppConfigTest(SimpleTestCase):
    def test_max_reviewers_default(self):
        self.assertEqual(AppConfig().max_reviewers, 2)

    def test_max_reviewers_above_two_is_rejected(self):
        """Тест: больше двух ревьюверов на PR настроить нельзя"""
        with patch.dict(os.environ, {"APP_MAX_REVIEWERS": "3"}):
            with self.assertRaises(ValidationError):
                AppConfig()

        with self.assertRaises(ValidationError):
            AppConfig(max_reviewers=4)

    def test_max_reviewers_from_env(self):
        with patch.dict(os.environ, {"APP_MAX_REVIEWERS": "1"}):
            self.assertEqual(AppConfig().max_reviewers, 1)
