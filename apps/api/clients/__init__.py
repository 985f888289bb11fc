"""HTTP clients for upstream station data."""
