"""Allow ``python -m dropbox_sync``."""

from .main import cli

cli()
