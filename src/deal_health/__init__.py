"""Deal health and probability recommendation engine for CRM opportunities."""

__version__ = "1.0.0"
