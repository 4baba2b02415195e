"""Ops HTTP API."""
