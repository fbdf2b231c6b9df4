"""Client-side catalog and review browsing state for the Claro REST API."""
