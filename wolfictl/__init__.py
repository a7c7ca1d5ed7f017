"""Reading, indexing, editing, graphing, linting and releasing Melange package configurations."""

__version__ = "0.1.0"