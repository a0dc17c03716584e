"""REST gateway over a single authenticated K PLUS banking session."""

__version__ = "1.0.0"
