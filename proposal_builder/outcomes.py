"""Discriminated failure outcomes returned across the core's public operations.

Adapters raise exceptions internally; the wizard-facing autosave engine and the
share snapshot composer translate them into one of these values so callers
branch on the kind instead of catching.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotFound:
    message: str = "Not found"


@dataclass(frozen=True)
class Unauthorized:
    message: str = "No authenticated session owns this proposal"


@dataclass(frozen=True)
class StoreError:
    message: str


@dataclass(frozen=True)
class ValidationError:
    message: str

