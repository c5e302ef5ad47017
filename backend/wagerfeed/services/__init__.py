"""Domain services and external adapters."""
