"""Adapters layer for Heading-Cache.

This module contains the storage, cache and session adapters. Adapters
implement Port interfaces defined in the domain layer.
"""
