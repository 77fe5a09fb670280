from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Protocol

from rondo.core.locks import ReadWriteLock


class UserAlreadyExistsError(Exception):
    pass


@dataclass(frozen=True)
class User:
    id: str
    first_name: str
    last_name: str
    dob: date
    phone: str
    created_at: datetime
    updated_at: datetime


class UserLookup(Protocol):
    def get_by_phone(self, phone: str) -> User | None:
        ...


class InMemoryUserDirectory:
    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._users: dict[str, User] = {}
        self._lock = ReadWriteLock()
        self._clock = clock

    def get_by_phone(self, phone: str) -> User | None:
        with self._lock.read():
            return self._users.get(phone)

    def create_user(self, *, first_name: str, last_name: str, dob: date, phone: str) -> User:
        now = self._clock()
        user = User(
            id=str(uuid.uuid4()),
            first_name=first_name,
            last_name=last_name,
            dob=dob,
            phone=phone,
            created_at=now,
            updated_at=now,
        )
        with self._lock.write():
            if phone in self._users:
                raise UserAlreadyExistsError("User with this phone number already exists")
            self._users[phone] = user
        return user


_directory: InMemoryUserDirectory | None = None


def get_user_directory() -> InMemoryUserDirectory:
    global _directory
    if _directory is None:
        _directory = InMemoryUserDirectory()
    return _directory


def reset_user_directory_for_tests() -> None:
    global _directory
    _directory = None
