"""Suggestion context, caching and providers."""
