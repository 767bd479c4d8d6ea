"""Persistence adapters"""

from .supabase_store import SupabaseCallStore, SupabaseClientRepository

__all__ = ["SupabaseCallStore", "SupabaseClientRepository"]
