"""SQLAlchemy engine + session management.

HTTP handlers use a session-per-request; the recovery scheduler opens its
own short transactions through :func:`session_scope`.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from flask import Flask, g
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from matka.models.base import Base


def _web_identity_credentials(region: str) -> dict[str, str] | None:
    """Exchange VERCEL_OIDC_TOKEN for temporary AWS credentials, if configured."""

    token = os.getenv("VERCEL_OIDC_TOKEN")
    role_arn = os.getenv("AWS_ROLE_ARN")
    if not token or not role_arn:
        return None

    import boto3

    sts = boto3.client("sts", region_name=region)
    creds = sts.assume_role_with_web_identity(
        RoleArn=role_arn,
        RoleSessionName="matka-settlement-rds",
        WebIdentityToken=token,
    )["Credentials"]
    return {
        "aws_access_key_id": creds["AccessKeyId"],
        "aws_secret_access_key": creds["SecretAccessKey"],
        "aws_session_token": creds["SessionToken"],
    }


def _rds_auth_token(*, host: str, port: int, user: str, region: str) -> str:
    """Generate an RDS IAM auth token to use as the Postgres password."""

    import boto3

    creds = _web_identity_credentials(region) or {}
    rds = boto3.client("rds", region_name=region, **creds)
    return rds.generate_db_auth_token(DBHostname=host, Port=port, DBUsername=user, Region=region)


def create_app_engine(database_url: str) -> Engine:
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            # One shared connection so every session sees the same in-memory db.
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={"check_same_thread": False}, pool_pre_ping=True)

    # Postgres without a static password: IAM auth when AWS_REGION is set.
    region = os.getenv("AWS_REGION")
    if url.get_backend_name() == "postgresql" and not url.password and region and url.host and url.username:
        import psycopg2

        host, username, database = url.host, url.username, url.database
        port = int(url.port or 5432)
        sslmode = (url.query or {}).get("sslmode") or os.getenv("PGSSLMODE") or "require"

        def _creator() -> object:
            return psycopg2.connect(
                host=host,
                port=port,
                user=username,
                password=_rds_auth_token(host=host, port=port, user=username, region=region),
                dbname=database,
                sslmode=sslmode,
            )

        return create_engine("postgresql+psycopg2://", creator=_creator, pool_pre_ping=True)

    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Transactional scope for work outside a request (scheduler ticks, scripts)."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(app: Flask) -> None:
    """Initialize database engine and per-request sessions."""

    engine = create_app_engine(str(app.config["DATABASE_URL"]))
    session_factory = create_session_factory(engine)

    # Import models so they register with Base.metadata.
    from matka import models  # noqa: F401

    # Production would use scripts/create_tables.py or migrations.
    Base.metadata.create_all(bind=engine)

    app.extensions["engine"] = engine
    app.extensions["session_factory"] = session_factory

    @app.before_request
    def _open_session() -> None:
        g.db = session_factory()  # type: ignore[attr-defined]

    @app.teardown_request
    def _close_session(exc: BaseException | None) -> None:
        session: Session | None = getattr(g, "db", None)
        if session is None:
            return

        try:
            if exc is None:
                session.commit()
            else:
                session.rollback()
        finally:
            session.close()


def get_session() -> Session:
    """Get the current request's SQLAlchemy session."""

    session: Session | None = getattr(g, "db", None)
    if session is None:
        raise RuntimeError("Database session not initialized")
    return session
