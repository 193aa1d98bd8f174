"""Lead Scout: Reddit lead qualification pipeline."""

__version__ = "0.1.0"
