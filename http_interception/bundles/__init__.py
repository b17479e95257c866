"""Declarative bundles of HTTP request interceptions."""
