import logging
from logging.config import fileConfig

from flask import current_app
from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')

# Importing the models registers every table on db.metadata
from fairdice_be.models import db, User, Transaction, Bet, HouseLedger, BetEvent, ChainBlock, TokenBlacklist

target_metadata = db.metadata


def run_migrations_offline():
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine; calls to
    context.execute() emit the given string to the script output.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode against the engine of the Flask app."""
    def process_revision_directives(context, revision, directives):
        if getattr(config.cmd_opts, 'autogenerate', False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                logger.info('No changes in schema detected.')

    connectable = current_app.extensions['migrate'].db.engine

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            process_revision_directives=process_revision_directives,
            **current_app.extensions['migrate'].configure_args
        )

        with context.begin_transaction():
            context.run_migrations()


# Prefer the URL of the running Flask app over alembic.ini
try:
    config.set_main_option('sqlalchemy.url', current_app.config['SQLALCHEMY_DATABASE_URI'].replace('%', '%%'))
except RuntimeError:
    logger.warning("Flask app context not available. Using alembic.ini for database URL.")

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
