"""Newsdesk: per-audience newsletter orchestration."""
