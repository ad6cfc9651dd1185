"""Persistence layer for the session bot: pool, migrations, repositories."""
