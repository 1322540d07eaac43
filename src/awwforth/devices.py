## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import logging
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from .types import Port, Word, NativeProcedure, ControlCode, CompiledDefinition
from .errors import InvalidPort, ReadOnlyViolation, InvalidDevice
from .memory import Memory
from .loader import make_native
from .interpreter import ExecutionContext


log = logging.getLogger(__name__)

DEVICE_BASE = 0x1000

AddWord = Callable[[str, Any], None]


@runtime_checkable
class Device(Protocol):
    """Anything with a namespace and a port table can be attached.

    Optional hooks, looked up by name: `initialize(binding)`, `cleanup()`, `register_words(add_word)`,
    and a `description` string.
    """
    namespace: str
    ports: Sequence[Port]


class PortBinding:
    """A device's view onto its own ports, all reads and writes go through shared memory."""

    def __init__(self, manager: "DeviceManager", namespace: str):
        self.manager = manager
        self.namespace = namespace
        self._unsubscribes: list[Callable[[], None]] = []

    def _port(self, name: str) -> tuple[int, Port]:
        return self.manager.lookup_port(self.namespace, name)

    def address(self, name: str) -> int:
        return self._port(name)[0]

    def get(self, name: str):
        address, port = self._port(name)
        return self.manager.memory.get_value(address, port.size)

    def set(self, name: str, value) -> None:
        """Write from the language side; read-only ports refuse."""
        address, port = self._port(name)
        if port.access == 'read':
            raise ReadOnlyViolation(f"Port `{self.namespace}.{name}` is read-only.", namespace=self.namespace, port=name)
        self.manager.memory.set_value(address, value, port.size)

    def update(self, name: str, value) -> None:
        """Write from the device side, any access mode."""
        address, port = self._port(name)
        self.manager.memory.set_value(address, value, port.size)

    def subscribe(self, name: str, callback: Callable[[Any, int], None]) -> Callable[[], None]:
        unsubscribe = self.manager.memory.subscribe(self.address(name), callback)
        self._unsubscribes.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        while self._unsubscribes:
            self._unsubscribes.pop()()


class DeviceManager:
    def __init__(self, memory: Memory, base: int = DEVICE_BASE, logger: logging.Logger | None = None):
        self.memory = memory
        self.next_port_address = base
        self.devices: dict[str, Device] = {}
        self.bindings: dict[str, PortBinding] = {}
        self.port_map: dict[int, tuple[str, Port]] = {}
        self._addresses: dict[str, dict[str, int]] = {}
        self.log = logger or log

    # Registration ────────────────────────────────────────────────────────────────────────────
    def register_device(self, device: Device) -> PortBinding:
        namespace = getattr(device, 'namespace', None)
        ports = getattr(device, 'ports', None)
        if not namespace or not ports:
            raise InvalidDevice("Device must have namespace and ports defined.", namespace=namespace)
        if namespace in self.devices:
            raise InvalidDevice(f"Device namespace `{namespace}` is already attached.", namespace=namespace)
        if not all(isinstance(p, Port) and p.size >= 1 and p.access in ('read', 'write', 'readwrite') for p in ports):
            raise InvalidDevice(f"Device `{namespace}` declares an invalid port.", namespace=namespace)

        addresses = {}
        for port in ports:
            address = self.memory.allocate_block(f"{namespace}.{port.name}", port.size, start_address=self.next_port_address)
            addresses[port.name] = address
            for offset in range(port.size):
                self.port_map[address + offset] = (namespace, port)
            self.next_port_address += port.size

        self.devices[namespace] = device
        self._addresses[namespace] = addresses
        self.bindings[namespace] = binding = PortBinding(self, namespace)
        self.log.info("Registered device `%s` with %d port(s).", namespace, len(addresses), extra={'category': 'Device'})
        return binding

    def unregister_device(self, namespace: str) -> Device:
        if namespace not in self.devices:
            raise InvalidDevice(f"No device attached under `{namespace}`.", namespace=namespace)
        addresses = self._addresses.pop(namespace)
        for port in self.devices[namespace].ports:
            for offset in range(port.size):
                self.port_map.pop(addresses[port.name] + offset, None)
            self.memory.release(f"{namespace}.{port.name}")
        self.bindings.pop(namespace).close()
        self.log.info("Unregistered device `%s`.", namespace, extra={'category': 'Device'})
        return self.devices.pop(namespace)

    def register_device_words(self, add_word: AddWord, namespace: str | None = None) -> None:
        """Install the default one-word-per-port accessors, then any richer words a device offers."""
        for ns in ([namespace] if namespace else list(self.devices)):
            device, binding = self.devices[ns], self.bindings[ns]
            for port in device.ports:
                add_word(port.name, self._make_accessor(binding, port.name))
            if (register_words := getattr(device, 'register_words', None)) is not None:
                register_words(lambda name, word: add_word(name, self._as_word(name, word)))

    def _make_accessor(self, binding: PortBinding, port_name: str) -> NativeProcedure:
        def accessor(ctx: ExecutionContext) -> None:
            ctx.stack.push(binding.get(port_name))
        accessor.__doc__ = f"Push the current value of port `{binding.namespace}.{port_name}`."
        return make_native(port_name, accessor, {'group': 'device', 'namespace': binding.namespace})

    @staticmethod
    def _as_word(name: str, word) -> Word:
        if isinstance(word, (NativeProcedure, ControlCode, CompiledDefinition)):
            return word
        return make_native(name, word, {'group': 'device'})

    # Addressing ──────────────────────────────────────────────────────────────────────────────
    def lookup_port(self, namespace: str, name: str) -> tuple[int, Port]:
        address = self._addresses.get(namespace, {}).get(name)
        if address is None:
            raise InvalidPort(f"Unknown port `{namespace}.{name}`.", namespace=namespace, port=name)
        return address, self.port_map[address][1]

    def port_for(self, address) -> tuple[str, Port] | None:
        return self.port_map.get(address)

    def check_write(self, address) -> None:
        if (entry := self.port_for(address)) is None:
            return
        namespace, port = entry
        if port.access == 'read':
            raise ReadOnlyViolation(f"Port `{namespace}.{port.name}` is read-only.", namespace=namespace, port=port.name)

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def describe(self) -> list[dict]:
        overview = []
        for namespace, device in self.devices.items():
            ports = []
            for port in device.ports:
                address, _ = self.lookup_port(namespace, port.name)
                ports.append({'name': port.name, 'address': address, 'access': port.access, 'size': port.size,
                              'description': port.description, 'value': self.memory.get_value(address, port.size)})
            overview.append({'namespace': namespace, 'description': getattr(device, 'description', ''), 'ports': ports})
        return overview
