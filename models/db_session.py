import logging

import sqlalchemy as sa
import sqlalchemy.orm as orm
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

SqlAlchemyBase = orm.declarative_base()

__factory = None
__engine = None

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def global_init(database_url: str):
    global __factory, __engine

    if __factory:
        return

    if not database_url or not database_url.strip():
        raise ValueError("A database URL is required.")

    engine_options = {}
    if database_url.startswith("sqlite"):
        engine_options["connect_args"] = {"check_same_thread": False}
        # one shared connection, otherwise every session sees its own empty database
        if database_url in _IN_MEMORY_URLS:
            engine_options["poolclass"] = StaticPool

    __engine = sa.create_engine(database_url, **engine_options)
    logger.info("Connected to database %s", __engine.url.render_as_string(hide_password=True))
    __factory = orm.sessionmaker(bind=__engine)

    from . import __all_models  # noqa: F401

    SqlAlchemyBase.metadata.create_all(__engine)


def get_engine():
    return __engine


def create_session() -> Session:
    return __factory()
