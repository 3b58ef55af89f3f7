"""SupaPanel - self-hosted Supabase project management panel."""

__version__ = "0.1.0"
