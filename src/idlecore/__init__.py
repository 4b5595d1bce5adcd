"""Idle economy core service."""
