from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from .lifetime import Lifetime
from ..errors import CircularDependencyError, ResolutionError

Factory = Callable[["Container"], Any]


def _release(instance: Any) -> None:
    """Call the first of ``dispose``, ``close`` or ``shutdown`` that *instance* has."""
    for name in ("dispose", "close", "shutdown"):
        method = getattr(instance, name, None)
        if callable(method):
            method()
            return


@dataclass
class Registration:
    interface: Type
    implementation: Optional[Type] = None
    lifetime: Lifetime = Lifetime.TRANSIENT
    factory: Optional[Factory] = None
    kwargs: Dict[str, Any] = field(default_factory=dict)
    owned: bool = True

    def build(self, container: Container) -> Any:
        if self.factory is not None:
            return self.factory(container)
        return (self.implementation or self.interface)(**self.kwargs)


class Scope:
    """Caches SCOPED registrations until the scope is disposed.

    One scope per open view keeps per-view services (stores, coordinators)
    apart while singletons such as the response cache stay shared.
    """

    def __init__(self, container: Container):
        self._container = container
        self._instances: Dict[Type, Any] = {}

    def resolve(self, interface: Type) -> Any:
        reg = self._container.registration(interface)
        if reg.lifetime is not Lifetime.SCOPED:
            return self._container.resolve(interface)
        if interface not in self._instances:
            self._instances[interface] = self._container._build(reg)
        return self._instances[interface]

    def dispose(self) -> None:
        instances = list(self._instances.values())
        self._instances.clear()
        for instance in reversed(instances):
            _release(instance)

    def __enter__(self) -> Scope:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()


class Container:
    """Type-keyed service registry.

    Factories receive the container so they can resolve their own
    dependencies.  ``close()`` releases the singletons the container built,
    newest first; instances handed in with ``register_instance`` are only
    released when registered with ``owned=True``.
    """

    def __init__(self):
        self._registrations: Dict[Type, Registration] = {}
        self._singletons: Dict[Type, Any] = {}
        self._resolving: List[Type] = []

    # --- Registration ---

    def register_singleton(self, interface: Type, implementation: Optional[Type] = None, **kwargs):
        self._add(Registration(interface, implementation, Lifetime.SINGLETON, kwargs=kwargs))

    def register_transient(self, interface: Type, implementation: Optional[Type] = None, **kwargs):
        self._add(Registration(interface, implementation, Lifetime.TRANSIENT, kwargs=kwargs))

    def register_scoped(self, interface: Type, implementation: Optional[Type] = None, **kwargs):
        self._add(Registration(interface, implementation, Lifetime.SCOPED, kwargs=kwargs))

    def register_factory(self, interface: Type, factory: Factory, lifetime: Lifetime = Lifetime.TRANSIENT):
        self._add(Registration(interface, lifetime=lifetime, factory=factory))

    def register_instance(self, interface: Type, instance: Any, owned: bool = False):
        self._add(
            Registration(
                interface,
                lifetime=Lifetime.SINGLETON,
                factory=lambda _container: instance,
                owned=owned,
            )
        )
        self._singletons[interface] = instance

    def is_registered(self, interface: Type) -> bool:
        return interface in self._registrations

    def registration(self, interface: Type) -> Registration:
        try:
            return self._registrations[interface]
        except KeyError:
            raise ResolutionError(f"No registration found for {interface.__name__}") from None

    # --- Resolution ---

    def resolve(self, interface: Type) -> Any:
        if interface in self._singletons:
            return self._singletons[interface]
        reg = self.registration(interface)
        instance = self._build(reg)
        if reg.lifetime is Lifetime.SINGLETON:
            self._singletons[interface] = instance
        return instance

    def create_scope(self) -> Scope:
        return Scope(self)

    def close(self) -> None:
        singletons = list(self._singletons.items())
        self._singletons.clear()
        for interface, instance in reversed(singletons):
            reg = self._registrations.get(interface)
            if reg is None or reg.owned:
                _release(instance)

    # --- Helpers ---

    def _add(self, reg: Registration) -> None:
        self._registrations[reg.interface] = reg
        self._singletons.pop(reg.interface, None)

    def _build(self, reg: Registration) -> Any:
        if reg.interface in self._resolving:
            chain = " -> ".join(t.__name__ for t in [*self._resolving, reg.interface])
            raise CircularDependencyError(f"Circular dependency detected: {chain}")
        self._resolving.append(reg.interface)
        try:
            return reg.build(self)
        finally:
            self._resolving.pop()
