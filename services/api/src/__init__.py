"""Sitelog API service."""
