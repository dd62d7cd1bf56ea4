"""
Exception types raised by the change-detection pipeline.
"""
from __future__ import annotations


class CDError(Exception):
    """Base class for pipeline errors."""


class InputError(CDError, ValueError):
    """Bad input sequence or non-positive parameters."""


class ConfigError(CDError, ValueError):
    """Inconsistent configuration, rejected before any pair is processed."""


class EmptyRegionError(CDError, RuntimeError):
    """No common non-background region exists across the sequence."""
