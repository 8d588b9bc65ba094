from __future__ import annotations

from relay.session import PairState, SessionPair


class PairRegistry:
    """In-memory index of live session pairs.

    Note: This is a single-process registry used for status reporting only;
    pairs never read each other's state through it.
    """

    def __init__(self) -> None:
        self._pairs: dict[str, SessionPair] = {}

    def add(self, pair: SessionPair) -> None:
        if pair.pair_id in self._pairs:
            raise ValueError(f"Pair {pair.pair_id} already registered")
        self._pairs[pair.pair_id] = pair

    def discard(self, pair: SessionPair) -> None:
        self._pairs.pop(pair.pair_id, None)

    def __len__(self) -> int:
        return len(self._pairs)

    def count(self, state: PairState) -> int:
        return sum(1 for pair in self._pairs.values() if pair.state is state)

    def stream_sids(self) -> list[str]:
        return [pair.stream_sid for pair in self._pairs.values() if pair.stream_sid]


GLOBAL_PAIR_REGISTRY = PairRegistry()
