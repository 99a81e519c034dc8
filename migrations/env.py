# migrations/env.py
from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = logging.getLogger("alembic.env")

# -----------------------------------------------------------------------------
# Two ways in:
#   flask db upgrade          -> engine and metadata from the running app
#   DATABASE_URL=... alembic  -> standalone, no Flask app is created
# -----------------------------------------------------------------------------
STANDALONE_URL = os.getenv("DATABASE_URL")


def _metadata():
    if STANDALONE_URL:
        from invoiceflow import models  # noqa: F401
        from invoiceflow.extensions import db
    else:
        from flask import current_app

        db = current_app.extensions["migrate"].db
    return db.metadata


def _url() -> str:
    if STANDALONE_URL:
        from invoiceflow.settings import _normalize_db_url

        return _normalize_db_url(STANDALONE_URL)

    from flask import current_app

    engine = current_app.extensions["migrate"].db.engine
    return engine.url.render_as_string(hide_password=False)


def _skip_empty_autogenerate(ctx, revision, directives):
    cmd_opts = getattr(config, "cmd_opts", None)
    if not (cmd_opts and getattr(cmd_opts, "autogenerate", False)):
        return
    if directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No schema changes detected; no revision written.")


def _configure_args() -> dict:
    args = {}
    if not STANDALONE_URL:
        from flask import current_app

        args.update(current_app.extensions["migrate"].configure_args or {})
    args.setdefault("process_revision_directives", _skip_empty_autogenerate)
    args.setdefault("compare_type", True)
    return args


def run_offline() -> None:
    context.configure(
        url=_url(),
        target_metadata=_metadata(),
        literal_binds=True,
        **_configure_args(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    if STANDALONE_URL:
        engine = create_engine(_url())
    else:
        from flask import current_app

        engine = current_app.extensions["migrate"].db.engine

    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=_metadata(), **_configure_args())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
