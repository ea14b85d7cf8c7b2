"""HTTP interface adapters."""
