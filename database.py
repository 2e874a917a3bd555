# database.py
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    event,
    func,
    text,
)
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, DisconnectionError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool
from fastapi import Request

from errors import ConnectivityError, SchemaError
from logger import logger

Base = declarative_base()


class Expense(Base):
    __tablename__ = "expenses"
    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    category = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False)


class User(Base):
    __tablename__ = "users"
    # created_at comes back with the INSERT instead of a second SELECT
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


@dataclass
class PoolConfig:
    host: str = "localhost"
    port: int = 5432
    username: str = "admin"
    password: str = "admin"
    dbname: str = "expense_tracker"
    max_conns: int = 10
    min_conns: int = 2
    max_conn_lifetime: int = 30 * 60  # seconds
    max_conn_idle_time: int = 10 * 60
    health_check_period: int = 2 * 60
    url: Optional[str] = None

    def connection_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.dbname,
        )


class Pool:
    """
    Bounded set of store connections shared by all requests.

    Connections are opened lazily; up to min_conns are kept around between
    requests and the pool grows to max_conns under load. Built once at
    startup with Pool.open() and passed to whoever needs it.
    """

    def __init__(self, engine, config: PoolConfig):
        self.engine = engine
        self.config = config
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        self._scheduler: Optional[BackgroundScheduler] = None
        self._closed = False

    @classmethod
    def open(cls, config: PoolConfig) -> "Pool":
        if config.max_conns < 1 or config.min_conns < 0:
            raise ConnectivityError("pool sizes must be positive")
        if config.min_conns > config.max_conns:
            raise ConnectivityError("min_conns cannot exceed max_conns")

        try:
            url = config.connection_url()
            connect_args = {}
            if url.get_backend_name() == "sqlite":
                connect_args["check_same_thread"] = False
            engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=config.min_conns,
                max_overflow=config.max_conns - config.min_conns,
                pool_recycle=config.max_conn_lifetime,
                pool_pre_ping=True,
                hide_parameters=True,
                connect_args=connect_args,
            )
        except (ArgumentError, ImportError) as e:
            raise ConnectivityError(f"error parsing pool config: {e}") from e

        _evict_idle_connections(engine, config.max_conn_idle_time)

        pool = cls(engine, config)
        try:
            pool.ping()
        except ConnectivityError:
            engine.dispose()
            raise

        pool._start_health_check()
        logger.info(
            f"Connected to database {url.render_as_string(hide_password=True)} "
            f"(min={config.min_conns}, max={config.max_conns})"
        )
        return pool

    def ping(self):
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise ConnectivityError(f"unable to ping database: {e}") from e

    @contextmanager
    def acquire(self):
        """Session for one unit of work; its connection goes back to the pool on exit."""
        db: Session = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self.engine.dispose()
        logger.info("Database pool closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _start_health_check(self):
        if self.config.health_check_period <= 0:
            return
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self.health_check,
            "interval",
            seconds=self.config.health_check_period,
            id="pool-health-check",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

    def health_check(self) -> bool:
        try:
            self.ping()
        except ConnectivityError as e:
            logger.warning(f"Pool health check failed, dropping idle connections: {e}")
            self.engine.dispose()
            return False
        logger.debug("Pool health check passed")
        return True


def _evict_idle_connections(engine, max_idle_seconds: int):
    @event.listens_for(engine, "checkin")
    def mark_checked_in(dbapi_connection, connection_record):
        connection_record.info["checked_in_at"] = time.monotonic()

    @event.listens_for(engine, "checkout")
    def reject_stale(dbapi_connection, connection_record, connection_proxy):
        checked_in_at = connection_record.info.pop("checked_in_at", None)
        if checked_in_at is None or max_idle_seconds <= 0:
            return
        if time.monotonic() - checked_in_at > max_idle_seconds:
            logger.debug("Discarding connection idle past max_conn_idle_time")
            # the pool replaces the connection and retries the checkout
            raise DisconnectionError("connection idle too long")


def ensure_schema(pool: Pool):
    try:
        Base.metadata.create_all(bind=pool.engine)
    except SQLAlchemyError as e:
        raise SchemaError(f"unable to initialize schema: {e}") from e
    logger.info("Database schema ensured")


def get_pool(request: Request) -> Pool:
    return request.app.state.pool


def get_db(request: Request):
    with get_pool(request).acquire() as db:
        yield db
