"""Pick Salesforce Custom Settings and export their data through the sf CLI."""

__version__ = "0.1.0"
