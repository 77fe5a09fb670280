from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

import redis

from rondo.core.config import settings
from rondo.core.locks import ReadWriteLock

_LOG = logging.getLogger("rondo.otp_store")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OtpRecord:
    code: str
    issued_at: datetime


class OtpStore(Protocol):
    def put(self, phone: str, code: str) -> None:
        ...

    def get(self, phone: str) -> OtpRecord | None:
        ...

    def delete(self, phone: str) -> None:
        ...

    def discard(self, phone: str, expected: OtpRecord) -> bool:
        ...


class InMemoryOtpStore:
    def __init__(self, clock: Callable[[], datetime] = _now_utc):
        self._data: dict[str, OtpRecord] = {}
        self._lock = ReadWriteLock()
        self._clock = clock

    def put(self, phone: str, code: str) -> None:
        record = OtpRecord(code=code, issued_at=self._clock())
        with self._lock.write():
            self._data[phone] = record

    def get(self, phone: str) -> OtpRecord | None:
        with self._lock.read():
            return self._data.get(phone)

    def delete(self, phone: str) -> None:
        with self._lock.write():
            self._data.pop(phone, None)

    def discard(self, phone: str, expected: OtpRecord) -> bool:
        with self._lock.write():
            if self._data.get(phone) != expected:
                return False
            del self._data[phone]
            return True


class RedisOtpStore:
    def __init__(
        self,
        client: redis.Redis,
        *,
        retention_seconds: int = 0,
        prefix: str = "otp:code:",
        clock: Callable[[], datetime] = _now_utc,
    ):
        self.client = client
        self.retention_seconds = int(retention_seconds or 0)
        self.prefix = prefix
        self._clock = clock

    def _key(self, phone: str) -> str:
        return f"{self.prefix}{phone}"

    @staticmethod
    def _encode(record: OtpRecord) -> str:
        return json.dumps({"code": record.code, "issued_at": record.issued_at.isoformat()})

    @staticmethod
    def _decode(raw: str | bytes | None) -> OtpRecord | None:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        return OtpRecord(code=str(data["code"]), issued_at=datetime.fromisoformat(data["issued_at"]))

    def put(self, phone: str, code: str) -> None:
        record = OtpRecord(code=code, issued_at=self._clock())
        self.client.set(self._key(phone), self._encode(record), ex=self.retention_seconds or None)

    def get(self, phone: str) -> OtpRecord | None:
        return self._decode(self.client.get(self._key(phone)))

    def delete(self, phone: str) -> None:
        self.client.delete(self._key(phone))

    def discard(self, phone: str, expected: OtpRecord) -> bool:
        key = self._key(phone)
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(key)
                if self._decode(pipe.get(key)) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                pipe.execute()
                return True
            except redis.WatchError:
                return False


_cached_store: OtpStore | None = None


def _build_store() -> OtpStore:
    backend = str(settings.OTP_STORE_BACKEND or "memory").strip().lower()
    if backend != "redis":
        return InMemoryOtpStore()
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisOtpStore(client, retention_seconds=settings.OTP_REDIS_RETENTION_SECONDS)
    except Exception:
        _LOG.warning("Redis OTP store unavailable; fallback to in-memory store")
        return InMemoryOtpStore()


def get_otp_store() -> OtpStore:
    global _cached_store
    if _cached_store is None:
        _cached_store = _build_store()
    return _cached_store


def reset_otp_store_for_tests() -> None:
    global _cached_store
    _cached_store = None
