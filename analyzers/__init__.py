"""Analyzers module - deterministic analysis components."""

from analyzers.name_resolver import NameResolver, Resolution

__all__ = ['NameResolver', 'Resolution']
