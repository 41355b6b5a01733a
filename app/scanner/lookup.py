"""
==============================================================================
Lookup Coordinator Module
==============================================================================

Resolves an accepted barcode to a product, bounded by a timeout.

Race:
-----
    ┌──────────────┐
    │ lookup task  │──┐
    └──────────────┘  │  asyncio.wait(FIRST_COMPLETED)  ──► LookupOutcome
    ┌──────────────┐  │  loser is always cancelled
    │ timer task   │──┘
    └──────────────┘

A lookup that finishes after the timer is discarded. Cancelling the lookup
task does not necessarily stop the underlying I/O (e.g. a query running in a
worker thread); its result simply has nowhere to go.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.scanner.constants import LOOKUP_TIMEOUT_SECONDS
from app.scanner.models import LookupOutcome


# Module logger
logger = logging.getLogger(__name__)

# Product Lookup Service: barcode -> product id, or None when unknown
LookupFunction = Callable[[str], Awaitable[Optional[int]]]


class LookupCoordinator:
    """
    Produces exactly one LookupOutcome per call.
    
    Attributes:
        timeout: Seconds before the lookup is abandoned
    
    Example:
        >>> coordinator = LookupCoordinator(service.lookup)
        >>> outcome = await coordinator.resolve("4005808521175")
        >>> outcome.kind
        <LookupOutcomeKind.RESOLVED: 'resolved'>
    """
    
    def __init__(self, lookup: LookupFunction, timeout: float = LOOKUP_TIMEOUT_SECONDS) -> None:
        self._lookup = lookup
        self.timeout = timeout
        self._outstanding: Optional[asyncio.Task] = None
    
    @property
    def is_busy(self) -> bool:
        """True while a lookup is outstanding."""
        return self._outstanding is not None
    
    async def resolve(self, barcode: str) -> LookupOutcome:
        """
        Look a barcode up, racing the lookup against the timeout.
        
        Args:
            barcode: Validated barcode
            
        Returns:
            RESOLVED, NOT_FOUND, TIMED_OUT or FAILED
            
        Raises:
            RuntimeError: Another lookup is still outstanding
        """
        if self._outstanding is not None:
            raise RuntimeError("A lookup is already outstanding")
        
        lookup_task = asyncio.create_task(self._lookup(barcode), name=f"lookup-{barcode}")
        timer_task = asyncio.create_task(asyncio.sleep(self.timeout), name="lookup-timeout")
        self._outstanding = lookup_task
        
        try:
            await asyncio.wait({lookup_task, timer_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer_task.cancel()
            if not lookup_task.done():
                lookup_task.cancel()
                lookup_task.add_done_callback(_discard_late_result)
            self._outstanding = None
        
        if not lookup_task.done() or lookup_task.cancelled():
            logger.warning(f"⏱️ Lookup for {barcode} timed out after {self.timeout}s")
            return LookupOutcome.timed_out()
        
        error = lookup_task.exception()
        if error is not None:
            logger.error(f"Lookup for {barcode} failed: {error}")
            return LookupOutcome.failed(str(error) or type(error).__name__)
        
        product_id = lookup_task.result()
        if product_id is None:
            logger.info(f"🔍 No product for barcode {barcode}")
            return LookupOutcome.not_found()
        
        logger.info(f"✅ Barcode {barcode} → product {product_id}")
        return LookupOutcome.resolved(product_id)


def _discard_late_result(task: asyncio.Task) -> None:
    # Retrieve the exception so asyncio does not log it as never retrieved
    if not task.cancelled():
        task.exception()
