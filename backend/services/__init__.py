"""Ranking engine services."""
