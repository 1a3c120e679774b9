"""keyspine CLI -- inspect, check and derive keys from the command line."""

from keyspine.cli.app import app

__all__ = ["app"]
