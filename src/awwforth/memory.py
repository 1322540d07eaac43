## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import logging
from typing import Any, Callable, Literal
from dataclasses import dataclass

from .errors import InvalidAddress


log = logging.getLogger(__name__)

MEMORY_SIZE = 65536
HEAP_START = 1000
CELL_BITS = 8


@dataclass
class Binding:
    address: int
    size: int
    kind: Literal["variable", "block"]


class Memory:
    """Linear array of cells, a bump allocator, and named bindings for introspection."""

    def __init__(self, size: int = MEMORY_SIZE, heap_start: int = HEAP_START, logger: logging.Logger | None = None,
                 heap_limit: int | None = None):
        self.size = size
        # The allocator never hands out cells at or above this address, device ports live there.
        self.heap_limit = size if heap_limit is None else heap_limit
        self.cells: list[Any] = [0] * size
        self.bindings: dict[str, Binding] = {}
        self.next_address = heap_start
        self._subscribers: dict[int, list[Callable]] = {}
        self.log = logger or log

    def _check(self, address, size: int = 1) -> int:
        if isinstance(address, bool) or not isinstance(address, int):
            if not (isinstance(address, float) and address.is_integer()):
                raise InvalidAddress(f"Address `{address}` is not an integer.", token=str(address))
            address = int(address)
        if address < 0 or address + size > self.size:
            raise InvalidAddress(f"Address {address} (+{size}) is outside memory of {self.size} cells.", token=str(address))
        return address

    # Allocation ──────────────────────────────────────────────────────────────────────────────
    def allot(self, size: int = 1) -> int:
        """Reserve `size` cells at the cursor and return the first address.  Addresses are never reused."""
        address = self.next_address
        if size < 0 or address + size > self.heap_limit:
            raise InvalidAddress(f"Cannot allot {size} cell(s) at {address}, the heap ends at {self.heap_limit}.")
        self.next_address += size
        return address

    def add_variable(self, name: str, size: int = 1) -> int:
        address = self.allot(size)
        self.bindings[name.lower()] = Binding(address, size, "variable")
        self.log.debug("Creating variable `%s` at %d.", name, address, extra={'category': 'Memory'})
        return address

    def allocate_block(self, name: str, size: int, start_address: int | None = None) -> int:
        address = self.allot(size) if start_address is None else self._check(start_address, size)
        self.bindings[name] = Binding(address, size, "block")
        self.log.debug("Allocating block `%s` of %d cell(s) at %d.", name, size, address, extra={'category': 'Memory'})
        return address

    def release(self, name: str) -> None:
        """Forget a binding; the cells themselves stay allocated."""
        self.bindings.pop(name, None)

    def get_variable(self, name: str) -> int | None:
        if (binding := self.bindings.get(name.lower())) is None:
            return None
        return binding.address

    # Access ──────────────────────────────────────────────────────────────────────────────────
    def set_value(self, address: int, value, size: int = 1) -> None:
        address = self._check(address, size)
        if size > 1:
            # Little-endian, one byte per cell.
            value = int(value)
            for i in range(size):
                self.cells[address + i] = (value >> (CELL_BITS * i)) & 0xFF
        else:
            self.cells[address] = value
        for callback in list(self._subscribers.get(address, ())):
            callback(value, size)

    def get_value(self, address: int, size: int = 1):
        address = self._check(address, size)
        if size > 1:
            value = 0
            for i in range(size):
                value |= int(self.cells[address + i] or 0) << (CELL_BITS * i)
            return value
        return self.cells[address] or 0

    def subscribe(self, address: int, callback: Callable[[Any, int], None]) -> Callable[[], None]:
        """Call `callback(value, size)` after every write to `address`; returns the unsubscribe function."""
        address = self._check(address)
        self._subscribers.setdefault(address, []).append(callback)

        def unsubscribe():
            if callback in (callbacks := self._subscribers.get(address, [])):
                callbacks.remove(callback)
        return unsubscribe

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def memory_map(self) -> dict:
        blocks = [{'name': name, 'address': b.address, 'size': b.size, 'type': b.kind,
                   'value': self.get_value(b.address, b.size)}
                  for name, b in self.bindings.items()]
        return {'blocks': blocks, 'next_address': self.next_address, 'free_space': self.heap_limit - self.next_address}
