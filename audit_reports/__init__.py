"""Static UX audit report generation from Airtable records."""

__version__ = "0.1.0"
