"""Task list service with live Supabase synchronization."""

__version__ = "1.0.0"
