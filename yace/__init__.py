"""Resource association, query building and Prometheus conversion for CloudWatch data."""

__version__ = "0.1.0"