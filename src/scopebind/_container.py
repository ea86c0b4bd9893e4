from __future__ import annotations

import inspect
import logging
import sys
import threading
import typing
import uuid
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    get_type_hints,
    overload,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    T = TypeVar("T")

    Abstract = type[T] | str
    FactoryFunc = Callable[["Container", Mapping[str, Any]], object]


class Lifecycle(Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    PER_REQUEST = "per-request"


class ResolutionFailure(Enum):
    CLASS_NOT_FOUND = "class-not-found"
    NOT_INSTANTIABLE = "not-instantiable"
    UNRESOLVABLE_DEPENDENCY = "unresolvable-dependency"


class ConfigurationError(ValueError):
    """Raised when a binding is registered with an invalid lifecycle or concrete."""


class ResolutionError(RuntimeError):
    """Raised when `Container.make` cannot produce an instance.

    `reason` tells the three failures apart, `abstract` is the identifier that failed
    (the declaring class for unresolvable dependencies) and `parameter` is the
    constructor parameter name, set only for unresolvable dependencies.
    """

    def __init__(
        self,
        reason: ResolutionFailure,
        abstract: object,
        parameter: str | None = None,
    ) -> None:
        self.reason = reason
        self.abstract = abstract
        self.parameter = parameter
        super().__init__(self._message())

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (self.reason, self.abstract, self.parameter))

    def _message(self) -> str:
        name = _display_name(self.abstract)
        if self.reason is ResolutionFailure.CLASS_NOT_FOUND:
            return f"Class [{name}] not found."
        if self.reason is ResolutionFailure.NOT_INSTANTIABLE:
            return f"Class [{name}] is not instantiable."
        return f"Unable to resolve dependency [{self.parameter}] in class [{name}]"


@dataclass(frozen=True)
class TypeReference:
    target: type | str  # class object or dotted import path


@dataclass(frozen=True)
class Factory:
    func: Callable[..., object]


@dataclass(frozen=True)
class PrebuiltInstance:
    value: object


@dataclass(frozen=True)
class Binding:
    concrete: TypeReference | Factory
    lifecycle: Lifecycle

    @property
    def shared(self) -> bool:
        return self.lifecycle in (Lifecycle.SINGLETON, Lifecycle.PER_REQUEST)


class Container:
    """Minimal DI container.

    - bind classes, import paths or factories to abstracts
    - resolve with constructor injection
    - lifecycles: transient / singleton / per-request
    - pre-built instances that survive every cache reset.
    """

    def __init__(self) -> None:
        self._bindings: dict[Any, Binding] = {}
        self._instances: dict[Any, PrebuiltInstance] = {}
        self._singletons: dict[Any, object] = {}
        self._request_instances: dict[Any, object] = {}
        self._request_id = _new_request_id()
        self._lock = threading.RLock()

    def bind(
        self,
        abstract: Abstract[T],
        concrete: type | str | FactoryFunc | None = None,
        lifecycle: Lifecycle | str = Lifecycle.TRANSIENT,
    ) -> None:
        """Register (or overwrite) the binding for an abstract.

        Example:
          container.bind(Logger, FileLogger, "singleton")
          container.bind("mailer", lambda c, params: Mailer(c.make(Logger)))
          container.bind(FileLogger)  # self-binding

        Instances already cached for the abstract are kept until the relevant cache is cleared.
        """
        binding = Binding(
            concrete=_as_concrete(abstract if concrete is None else concrete),
            lifecycle=_as_lifecycle(lifecycle),
        )

        with self._lock:
            self._bindings[abstract] = binding

    def singleton(self, abstract: Abstract[T], concrete: type | str | FactoryFunc | None = None) -> None:
        self.bind(abstract, concrete, Lifecycle.SINGLETON)

    def per_request(self, abstract: Abstract[T], concrete: type | str | FactoryFunc | None = None) -> None:
        self.bind(abstract, concrete, Lifecycle.PER_REQUEST)

    def instance(self, abstract: Abstract[T], value: object) -> None:
        """Register a pre-built object, returned as is by every `make` call."""
        with self._lock:
            self._instances[abstract] = PrebuiltInstance(value)

    def bound(self, abstract: Abstract[T]) -> bool:
        with self._lock:
            return abstract in self._bindings or abstract in self._instances

    def get_bindings(self) -> Mapping[Any, Binding]:
        """Read-only snapshot of the binding table."""
        with self._lock:
            return MappingProxyType(dict(self._bindings))

    @overload
    def make(self, abstract: type[T], parameters: Mapping[str, Any] | None = ...) -> T: ...

    @overload
    def make(self, abstract: str, parameters: Mapping[str, Any] | None = ...) -> Any: ...

    def make(self, abstract: Abstract[T], parameters: Mapping[str, Any] | None = None) -> object:
        """Resolve the abstract to an instance.

        - A pre-built instance wins over everything else.
        - A cached singleton or per-request instance is returned when present.
        - Otherwise a new instance is built and cached according to the binding's lifecycle.
        `parameters` supplies constructor arguments by name (or is handed to a factory).
        Unbound string abstracts are looked up as dotted paths in modules that are already imported.
        """
        if parameters is None:
            parameters = {}

        with self._lock:
            direct = self._instances.get(abstract)
            if direct is not None:
                return direct.value

            binding = self._bindings.get(abstract)
            lifecycle = binding.lifecycle if binding else None

            if lifecycle is Lifecycle.SINGLETON and abstract in self._singletons:
                return self._singletons[abstract]

            if lifecycle is Lifecycle.PER_REQUEST and abstract in self._request_instances:
                return self._request_instances[abstract]

            instance = self._build(abstract, binding, parameters)

            if lifecycle is Lifecycle.SINGLETON:
                self._singletons[abstract] = instance
            elif lifecycle is Lifecycle.PER_REQUEST:
                logger.debug("Caching %s for request %s", _display_name(abstract), self._request_id)
                self._request_instances[abstract] = instance

            return instance

    def _build(self, abstract: Abstract[T], binding: Binding | None, parameters: Mapping[str, Any]) -> object:
        target: object = abstract

        if binding is not None:
            concrete = binding.concrete
            if isinstance(concrete, Factory):
                return concrete.func(self, parameters)
            target = concrete.target

        cls = _locate_class(target)
        logger.debug("Building %s as %s", _display_name(abstract), cls.__qualname__)
        return Constructor(self).construct(cls, parameters)

    def resolve_param(
        self,
        cls: type,
        p: inspect.Parameter,
        parameters: Mapping[str, Any],
        hints: dict[str, Any],
    ) -> Any:
        """Resolving param.

        Resolution precedence:
        1. explicit override
        2. type-based resolution for class annotations
        3. default
        4. error.
        """
        name = p.name

        # 1) override, used verbatim
        if name in parameters:
            return parameters[name]

        # 2) type-based
        ann = hints.get(name)
        if _is_injectable(ann):
            try:
                return self.make(ann)
            except ResolutionError as exc:
                # Only the dependency's own lookup failure is recoverable; deeper errors propagate.
                if exc.reason is ResolutionFailure.UNRESOLVABLE_DEPENDENCY or exc.abstract is not ann:
                    raise
                if p.default is not inspect.Parameter.empty:
                    logger.debug("Using default for '%s' of %s: %s", name, cls.__qualname__, exc)
                    return p.default
                raise ResolutionError(ResolutionFailure.UNRESOLVABLE_DEPENDENCY, cls, parameter=name) from exc

        # 3) default
        if p.default is not inspect.Parameter.empty:
            return p.default

        # 4) error
        raise ResolutionError(ResolutionFailure.UNRESOLVABLE_DEPENDENCY, cls, parameter=name)

    def clear_instances(self) -> None:
        """Drop cached singleton and per-request instances. Pre-built instances are kept."""
        with self._lock:
            logger.debug(
                "Clearing %d singleton and %d per-request instances",
                len(self._singletons),
                len(self._request_instances),
            )
            self._singletons = {}
            self._request_instances = {}

    def start_new_request(self) -> None:
        with self._lock:
            previous = self._request_id
            self._request_id = _new_request_id()
            self._request_instances = {}
            logger.debug("Request %s ended, starting %s", previous, self._request_id)

    def get_request_id(self) -> str:
        with self._lock:
            return self._request_id


class Constructor:
    def __init__(self, resolver: Container) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T], parameters: Mapping[str, Any]) -> T:
        if cls.__init__ is object.__init__:
            return cls()

        try:
            sig = inspect.signature(cls)
        except (TypeError, ValueError):
            # builtin types without introspectable signatures
            logger.debug("No signature for %s, passing parameters as keywords", cls.__qualname__)
            return cls(**parameters)

        hints = _get_init_type_hints(cls)
        args, kwargs = self._materialize_call(cls, sig, parameters, hints)
        return cls(*args, **kwargs)

    def _materialize_call(
        self,
        cls: type[T],
        sig: inspect.Signature,
        parameters: Mapping[str, Any],
        hints: dict[str, Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        params = sig.parameters
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for name, p in params.items():
            # *args is never filled
            if p.kind is p.VAR_POSITIONAL:
                continue

            # **kwargs collects the overrides no named parameter claims
            if p.kind is p.VAR_KEYWORD:
                kwargs.update({k: v for k, v in parameters.items() if k not in params})
                continue

            value = self._resolver.resolve_param(cls, p, parameters, hints)
            if p.kind is p.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[name] = value

        return args, kwargs


def _as_lifecycle(value: Lifecycle | str) -> Lifecycle:
    try:
        return Lifecycle(value)
    except ValueError as exc:
        allowed = ", ".join(repr(item.value) for item in Lifecycle)
        msg = f"Unknown lifecycle {value!r}; expected one of {allowed}"
        raise ConfigurationError(msg) from exc


def _as_concrete(concrete: object) -> TypeReference | Factory:
    if isinstance(concrete, (TypeReference, Factory)):
        return concrete

    if inspect.isclass(concrete) or isinstance(concrete, str):
        return TypeReference(concrete)

    if callable(concrete):
        return Factory(concrete)

    msg = (
        f"Cannot bind {concrete!r}: expected a class, an import path or a factory. "
        "Use instance() to register pre-built objects."
    )
    raise ConfigurationError(msg)


def _locate_class(target: object) -> type:
    obj = _import_path(target) if isinstance(target, str) else target

    if not inspect.isclass(obj) or inspect.isabstract(obj) or _is_protocol(obj):
        raise ResolutionError(ResolutionFailure.NOT_INSTANTIABLE, target)

    return obj


def _import_path(path: str) -> object:
    """Find the object named by a dotted path inside the longest already-imported module prefix.

    Modules are never imported here, so naming a path cannot run import-time side effects.
    """
    parts = path.split(".")
    if not all(parts):
        raise ResolutionError(ResolutionFailure.CLASS_NOT_FOUND, path)

    for i in range(len(parts), 0, -1):
        obj: object | None = sys.modules.get(".".join(parts[:i]))
        if obj is None:
            continue

        try:
            for attr in parts[i:]:
                obj = getattr(obj, attr)
        except AttributeError as exc:
            raise ResolutionError(ResolutionFailure.CLASS_NOT_FOUND, path) from exc
        return obj

    raise ResolutionError(ResolutionFailure.CLASS_NOT_FOUND, path)


def _is_injectable(ann: object) -> bool:
    """Annotated classes outside builtins are resolved through the container; primitives never are."""
    if ann is None or ann is Any or ann is inspect.Parameter.empty:
        return False
    return inspect.isclass(ann) and getattr(ann, "__module__", "") != "builtins"


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: type) -> bool:
        """Detect whether 'tp' is a Protocol class itself, not a class implementing one."""
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False))


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints


def _new_request_id() -> str:
    return f"request_{uuid.uuid4().hex}"


def _display_name(abstract: object) -> str:
    if inspect.isclass(abstract):
        return f"{abstract.__module__}.{abstract.__qualname__}"
    return str(abstract)
