"""Kernel utilities (hashing)."""
