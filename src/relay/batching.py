from __future__ import annotations


class CommitBatcher:
    """Counts inbound frames and says when the upstream input buffer should be committed.

    The threshold is fixed per deployment (20 frames ~ 400 ms at 16 kHz, 25
    frames ~ 500 ms at 24 kHz, at 20 ms per telephony frame).
    """

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            raise ValueError("commit threshold must be at least 1 frame")
        self.threshold = threshold
        self._count = 0

    @property
    def pending(self) -> int:
        return self._count

    def record_frame(self) -> bool:
        self._count += 1
        if self._count >= self.threshold:
            self._count = 0
            return True
        return False

    def reset(self) -> int:
        """Drop the residual count and return it."""

        residual = self._count
        self._count = 0
        return residual
