"""Operator HTTP routes."""
