"""Client identity generators used by the connection registry."""

import itertools
import uuid
from typing import Protocol

from relay.constants import ClientIDStrategy


class ClientIDGenerator(Protocol):
    """
    Source of client identity tokens.

    Uses structural subtyping - any object with ``next_id`` is compatible.
    Uniqueness against currently registered clients is enforced by the
    registry, which asks for another id on a collision.
    """

    def next_id(self) -> str: ...


class UUIDClientIDGenerator:
    """Random UUID4 tokens, e.g. ``'9b1d1c9e-6a0f-4c53-9f3e-0d2b8c7a41f0'``."""

    def next_id(self) -> str:
        return str(uuid.uuid4())


class SequentialClientIDGenerator:
    """
    Monotonically increasing decimal tokens (``'0'``, ``'1'``, ...).

    Never repeats within one process run.
    """

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start)

    def next_id(self) -> str:
        return str(next(self._counter))


def create_client_id_generator(
    strategy: ClientIDStrategy,
) -> ClientIDGenerator:
    """
    Build the generator for a configured strategy.

    Args:
        strategy: Strategy selected in settings.

    Returns:
        A fresh generator instance.
    """
    if strategy == ClientIDStrategy.SEQUENTIAL:
        return SequentialClientIDGenerator()
    return UUIDClientIDGenerator()
