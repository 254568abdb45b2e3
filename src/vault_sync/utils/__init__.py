"""Utility helpers for VaultSync."""
