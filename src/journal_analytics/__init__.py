"""Trading journal performance analytics and rule-compliance engine."""

__version__ = "0.1.0"
