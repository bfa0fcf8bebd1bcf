"""Mirror remote Dropbox folders into local directories."""

__version__ = "1.0.0"
