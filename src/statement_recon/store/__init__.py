"""Installment store interface and adapters."""

from .base import InstallmentStore
from .memory import InMemoryInstallmentStore
from .tabular import TabularInstallmentStore

__all__ = [
    "InstallmentStore",
    "InMemoryInstallmentStore",
    "TabularInstallmentStore",
]
