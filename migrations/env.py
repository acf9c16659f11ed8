import logging
from logging.config import fileConfig

from alembic import context
from flask import current_app
from sqlalchemy import create_engine, text

from pressrun import models  # noqa: F401  # populate metadata for autogenerate
from pressrun.config import Settings

config = context.config
fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')

target_db = current_app.extensions['migrate'].db


def get_engine():
    """ALEMBIC_DATABASE_URL (or DATABASE_URL) wins over the app engine, e.g. for a direct admin connection."""
    settings = Settings()
    url = settings.database_url('ALEMBIC_DATABASE_URL') or settings.database_url('DATABASE_URL')
    if url:
        return create_engine(url)
    return target_db.engine


def get_engine_url() -> str:
    return get_engine().url.render_as_string(hide_password=False).replace('%', '%%')


config.set_main_option('sqlalchemy.url', get_engine_url())


def run_migrations_offline():
    """Emit SQL for the configured URL without connecting."""
    context.configure(
        url=config.get_main_option('sqlalchemy.url'),
        target_metadata=target_db.metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _skip_empty_autogenerate(migration_context, revision, directives):
    if getattr(config.cmd_opts, 'autogenerate', False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info('No changes in schema detected.')


def _drop_stale_batch_tables(connection) -> None:
    """Remove tables left behind by an interrupted SQLite batch migration."""
    rows = connection.execute(text(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE '_alembic_tmp_%'"
    )).fetchall()
    for (table_name,) in rows:
        connection.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))
        logger.info('Dropped stale batch table %s', table_name)
    if rows:
        connection.commit()


def run_migrations_online():
    conf_args = dict(current_app.extensions['migrate'].configure_args)
    conf_args['transaction_per_migration'] = True
    conf_args.setdefault('process_revision_directives', _skip_empty_autogenerate)

    with get_engine().connect() as connection:
        if connection.dialect.name == 'sqlite':
            _drop_stale_batch_tables(connection)

        context.configure(connection=connection, target_metadata=target_db.metadata, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
