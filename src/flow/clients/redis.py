"""
=============================================================================
REDIS CLIENT
=============================================================================

redis-py client with the application's key prefix, exposed to handlers as
``ctx.redis`` when ``RedisConfig.enable`` is set.

    key "user:7"  ──►  stored as "<prefix>-user:7"      (prefix "flow")

    ┌──────────────────────────┬──────────────────────────────────────┐
    │  get(key)                │  RedisResult; RedisKeyNotExistError  │
    │  set(key, value, ex)     │  dict/list/dataclass → JSON,         │
    │                          │  str/bytes stored as-is              │
    │  delete(key)             │                                      │
    │  *_without_prefix        │  same, raw key                       │
    │  get_all_keys(pattern)   │  SCAN with the prefixed pattern      │
    │  delete_keys(pattern)    │  delete everything get_all_keys finds│
    └──────────────────────────┴──────────────────────────────────────┘

The server is pinged when the client is created; an unreachable server
fails application startup.
=============================================================================
"""

import dataclasses
import json
import logging
from typing import Any, List, Optional

import redis

from ..config import RedisConfig
from ..errors import RedisKeyNotExistError

logger = logging.getLogger(__name__)


class RedisResult(str):
    def parse(self) -> Any:
        return json.loads(self)

    def raw(self) -> str:
        return str(self)


def _encode(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return json.dumps(dataclasses.asdict(value), ensure_ascii=False)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    raise TypeError(f"value is neither mapping, dataclass nor string: {type(value).__name__}")


class RedisClient:
    def __init__(self, config: RedisConfig, client: Optional[redis.Redis] = None):
        self.config = config
        self._client = client or redis.Redis(
            host=config.host,
            port=config.port,
            db=config.db_num,
            password=config.password or None,
            decode_responses=True,
        )
        self._client.ping()
        logger.info(f"Redis connected at {config.host}:{config.port}/{config.db_num}")

    @property
    def client(self) -> redis.Redis:
        return self._client

    def fill_key(self, key: str) -> str:
        return f"{self.config.prefix}-{key}"

    def get(self, key: str) -> RedisResult:
        return self.get_without_prefix(self.fill_key(key))

    def set(self, key: str, value: Any, expiration: Optional[float] = None) -> None:
        self.set_without_prefix(self.fill_key(key), value, expiration)

    def delete(self, key: str) -> None:
        self.delete_without_prefix(self.fill_key(key))

    def get_without_prefix(self, key: str) -> RedisResult:
        value = self._client.get(key)
        if value is None:
            raise RedisKeyNotExistError(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return RedisResult(value)

    def set_without_prefix(self, key: str, value: Any, expiration: Optional[float] = None) -> None:
        # redis-py wants whole milliseconds for px
        px = int(expiration * 1000) if expiration else None
        self._client.set(key, _encode(value), px=px)

    def delete_without_prefix(self, key: str) -> None:
        self._client.delete(key)

    @staticmethod
    def is_nil(error: BaseException) -> bool:
        return isinstance(error, RedisKeyNotExistError)

    def get_all_keys(self, pattern: str) -> List[str]:
        return self.get_all_keys_without_prefix(self.fill_key(pattern))

    def get_all_keys_without_prefix(self, pattern: str) -> List[str]:
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in self._client.scan_iter(match=pattern)]

    def delete_keys(self, pattern: str) -> int:
        return self._delete_all(self.get_all_keys(pattern))

    def delete_keys_without_prefix(self, pattern: str) -> int:
        return self._delete_all(self.get_all_keys_without_prefix(pattern))

    def _delete_all(self, keys: List[str]) -> int:
        if not keys:
            return 0
        return self._client.delete(*keys)

    def close(self) -> None:
        self._client.close()
