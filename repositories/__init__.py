"""Supabase persistence for the lead engine."""
