"""Adapters - Infrastructure implementations of core interfaces.

Identity providers, storage, entitlements and email notifications.
"""
