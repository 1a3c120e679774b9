"""Allow ``python -m keyspine.cli``."""

from keyspine.cli.app import app

app()
