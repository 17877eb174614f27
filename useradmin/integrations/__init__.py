"""Outbound integrations (email delivery, error tracking)."""
