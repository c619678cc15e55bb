"""
Batch Lifecycle
===============
Groups requests under monotonically increasing batch ids. At most one
batch is active at a time; closed batches are kept as history.
"""

import time
from typing import Callable, Dict, List, Optional

from .errors import BatchNotActive, UnknownBatch
from .models import Batch


class BatchLifecycle:
    """Owns the batch table"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.batches: Dict[int, Batch] = {}
        self._last_batch_id = 0
        self._active_batch_id: Optional[int] = None
        self._clock = clock

    @property
    def active_batch_id(self) -> Optional[int]:
        return self._active_batch_id

    def open_batch(self) -> int:
        """
        Open a new batch, closing the current one if any.

        Returns:
            New batch id, greater than every previous id
        """
        if self._active_batch_id is not None:
            self.close_batch(self._active_batch_id)

        self._last_batch_id += 1
        batch = Batch(batch_id=self._last_batch_id, is_active=True, opened_at=self._clock())
        self.batches[batch.batch_id] = batch
        self._active_batch_id = batch.batch_id
        return batch.batch_id

    def close_batch(self, batch_id: int) -> Batch:
        """
        Close a batch. Closing an already closed batch is a no-op.

        Raises:
            UnknownBatch: If the batch was never opened
        """
        batch = self.get(batch_id)
        if batch.is_active:
            batch.is_active = False
            batch.closed_at = self._clock()
            if self._active_batch_id == batch_id:
                self._active_batch_id = None
        return batch

    def get(self, batch_id: int) -> Batch:
        batch = self.batches.get(batch_id)
        if batch is None:
            raise UnknownBatch(f"Batch {batch_id} does not exist")
        return batch

    def require_active(self, batch_id: Optional[int]) -> Batch:
        """Raise BatchNotActive unless the batch exists and is open"""
        batch = self.batches.get(batch_id) if batch_id is not None else None
        if batch is None or not batch.is_active:
            raise BatchNotActive(f"Batch {batch_id} is not active")
        return batch

    def list_batches(self) -> List[Batch]:
        return [self.batches[k] for k in sorted(self.batches)]
