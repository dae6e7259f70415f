"""Shared type aliases for mtopo."""
