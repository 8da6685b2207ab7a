"""
=============================================================================
ORM CLIENT
=============================================================================

SQLAlchemy engine and session factory built from OrmConfig, exposed to
handlers as ``ctx.orm`` when ``OrmConfig.enable`` is set.

    ┌────────────────────┬────────────────────────────────────────────┐
    │  OrmPool           │  create_engine() argument                  │
    ├────────────────────┼────────────────────────────────────────────┤
    │  max_idle          │  pool_size                                 │
    │  max_open          │  pool_size + max_overflow                  │
    │  conn_max_lifetime │  pool_recycle (ms → s)                     │
    │  conn_max_idle_time│  pool_timeout (ms → s)                     │
    └────────────────────┴────────────────────────────────────────────┘

Usage:

    class User(Base):
        __tablename__ = "users"
        id: Mapped[int] = mapped_column(primary_key=True)
        name: Mapped[str] = mapped_column(String(64))

    ctx.orm.create(User(name="alice"))
    users = ctx.orm.find(User, name="alice")

    with ctx.orm.session() as session:
        session.add(User(name="bob"))          # committed on exit

=============================================================================
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy import create_engine, select
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ..config import OrmConfig, OrmPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_url(config: OrmConfig) -> URL:
    if config.url:
        return make_url(config.url)
    return URL.create(
        config.dialect,
        username=config.user_name,
        password=config.password,
        host=config.host,
        port=config.port,
        database=config.db_name or None,
        query={"charset": "utf8mb4"} if config.dialect.startswith("mysql") else {},
    )


def create_orm_engine(config: OrmConfig) -> Engine:
    url = build_url(config)
    pool = config.pool or OrmPool()

    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=pool.max_idle,
            max_overflow=max(pool.max_open - pool.max_idle, 0),
            pool_recycle=pool.conn_max_lifetime / 1000,
            pool_timeout=pool.conn_max_idle_time / 1000,
        )
    return create_engine(url, **kwargs)


class Orm:
    def __init__(self, config: OrmConfig, engine: Optional[Engine] = None):
        self.config = config
        self.engine = engine or create_orm_engine(config)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._models: Dict[str, Type[Any]] = {}
        logger.info(f"ORM engine ready: {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """A session committed on success and rolled back on error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def register(self, name: str, model: Type[Any]) -> "Orm":
        self._models[name] = model
        return self

    def use(self, name: str) -> Optional[Type[Any]]:
        return self._models.get(name)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def create(self, value: Any) -> Any:
        with self.session() as session:
            session.add(value)
        return value

    def find(self, model: Type[Any], **filters: Any) -> List[Any]:
        with self.session() as session:
            return list(session.scalars(select(model).filter_by(**filters)))

    def close(self) -> None:
        self.engine.dispose()
