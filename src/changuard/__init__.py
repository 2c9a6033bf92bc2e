"""changuard: IRC channel guard that keeps +e ban exceptions in sync with an allow-list."""

__version__ = "0.1.0"
