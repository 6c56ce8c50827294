import random
import threading
from typing import Iterable, Optional, Sequence

from .models import User


class CandidateSelector:
    """
    Выбор ревьюверов среди активных участников команды.

    Источник случайности передается снаружи, чтобы в тестах можно было
    подставить генератор с фиксированным seed. Один экземпляр используется
    всеми потоками, поэтому выборка из генератора идет под блокировкой.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.Lock()

    @classmethod
    def with_seed(cls, seed: Optional[int]) -> 'CandidateSelector':
        return cls(random.Random(seed))

    def select_candidates(self, team_name: str, exclude_ids: Iterable[str]) -> list:
        """
        Активные участники команды team_name, кроме exclude_ids (в порядке id)
        """
        return list(User.objects.active_members_except(team_name, exclude_ids))

    def pick_random(self, candidates: Sequence, count: int) -> list:
        """
        Случайно выбирает min(count, len(candidates)) разных кандидатов.

        Пустой список кандидатов или count <= 0 - это не ошибка, а пустой результат.
        """
        if not candidates or count <= 0:
            return []

        with self._lock:
            return self._rng.sample(list(candidates), min(count, len(candidates)))
