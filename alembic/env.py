from logging.config import fileConfig
from alembic import context
from sqlalchemy import engine_from_config, pool
import os
from datakit.db.session import Base

# import models
from datakit.models.user import User, UserMeta
from datakit.models.post import Post
from datakit.models.form import Form
from datakit.models.form_field import FormField
from datakit.models.form_entry import FormEntry, FormEntryValue
from datakit.models.attachment import Attachment

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)
target_metadata = Base.metadata

def get_url():
    return os.getenv("DATABASE_URL")

def run_migrations_offline():
    context.configure(url=get_url(), target_metadata=target_metadata, literal_binds=True, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    cfg = config.get_section(config.config_ini_section) or {}
    cfg["sqlalchemy.url"] = get_url()
    connectable = engine_from_config(cfg, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
