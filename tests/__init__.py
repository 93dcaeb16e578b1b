"""Unit tests for localize.

This package contains test modules for all components of the locale synchronisation tool.
Tests use pytest with asyncio support and replace provider HTTP calls with in-process fakes.
"""
