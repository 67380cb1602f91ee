import threading
from collections import defaultdict
from datetime import date
from uuid import UUID


class InMemoryStorage:
    """Tables for every entity plus the lock registry guarding them.

    Rows are plain dicts keyed by id; services build pydantic models from them
    on the way out. ``user_lock`` serializes everything that reads a user's
    balance and then writes on it. ``reward_lock`` guards a reward's stock
    counter.
    """

    def __init__(self):
        self.users: dict[UUID, dict] = {}
        self.credit_transactions: dict[UUID, dict] = {}
        self.rewards: dict[UUID, dict] = {}
        self.redemptions: dict[UUID, dict] = {}
        self.voucher_codes: dict[str, dict] = {}
        self.achievements: dict[UUID, dict] = {}
        self.achievement_index: dict[tuple[UUID, str], UUID] = {}
        self.step_records: dict[tuple[UUID, date], dict] = {}

        self._registry_lock = threading.Lock()
        self._user_locks: dict[UUID, threading.RLock] = defaultdict(threading.RLock)
        self._reward_locks: dict[UUID, threading.Lock] = defaultdict(threading.Lock)

    def user_lock(self, user_id: UUID) -> threading.RLock:
        with self._registry_lock:
            return self._user_locks[user_id]

    def reward_lock(self, reward_id: UUID) -> threading.Lock:
        with self._registry_lock:
            return self._reward_locks[reward_id]
