"""Public IP detection, DNS record reconciliation, monitors and notifier composition for dynamic DNS."""

__version__ = "0.1.0"