"""
BaseService -- abstract base for kernel persistence services.

Responsibility:
    Common constructor for every service that reads and writes through a
    DocumentStore: the store itself and an injected Clock for timestamps.

Architecture position:
    Kernel > Services.  Every service in ``cashbook_kernel/services/``
    extends this class.
"""

from abc import ABC

from cashbook_kernel.domain.clock import Clock, SystemClock
from cashbook_kernel.store.base import DocumentStore


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a DocumentStore from the caller.  Services never open their
        own store or read configuration; everything is injected.
    """

    def __init__(self, store: DocumentStore, clock: Clock | None = None):
        self.store = store
        self.clock = clock or SystemClock()
