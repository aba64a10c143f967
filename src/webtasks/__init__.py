"""Page automation and single-exchange AI orchestration for an embedded browser."""

__version__ = "1.0.0"
