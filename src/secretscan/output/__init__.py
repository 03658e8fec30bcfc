"""Reporters that consume the ranked Finding list."""
