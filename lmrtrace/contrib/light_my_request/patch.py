import asyncio
import enum
import functools
import importlib.metadata
import inspect
import sys
from collections.abc import Mapping
from contextlib import contextmanager
from types import ModuleType
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

import attr
from opentelemetry import context as otel_context
from opentelemetry import propagate
from opentelemetry import trace
from opentelemetry.semconv.attributes.error_attributes import ERROR_TYPE
from opentelemetry.semconv.attributes.http_attributes import HTTP_RESPONSE_STATUS_CODE
from opentelemetry.trace import SpanKind
from opentelemetry.trace.status import Status
from opentelemetry.trace.status import StatusCode
import wrapt
from wrapt.importer import when_imported

from ..._monkey import is_version_compatible
from ...internal.logger import get_logger
from ...internal.utils import get_argument_value
from ...internal.utils.wrappers import unwrap
from ...settings._config import config
from ...version import __version__
from .utils import request_descriptor
from .utils import span_attributes


log = get_logger(__name__)

MODULE_NAME = "light_my_request"
DISTRIBUTION_NAME = "light-my-request"
SUPPORTED_VERSIONS = ">=4.0.0"

# Attribute names a module namespace may publish ``inject`` under
EXPORT_NAMES = ("inject", "default")

DEFAULT_STATUS_CODE = 200
OTHER_ERROR_TYPE = "_OTHER"

config._add(
    "light_my_request",
    dict(
        request_hook=None,
        response_hook=None,
    ),
)


def get_version():
    # type: () -> str
    try:
        return importlib.metadata.version(DISTRIBUTION_NAME)
    except importlib.metadata.PackageNotFoundError:
        return getattr(sys.modules.get(MODULE_NAME), "__version__", "")


def _supported_versions():
    # type: () -> Dict[str, str]
    return {MODULE_NAME: SUPPORTED_VERSIONS}


class ModuleShape(enum.Enum):
    NAMESPACE = "namespace"
    CALLABLE = "callable"
    UNSUPPORTED = "unsupported"


def resolve_module_shape(module_exports):
    # type: (Any) -> Tuple[ModuleShape, Optional[Callable[..., Any]]]
    """Find the ``inject`` callable inside ``module_exports``.

    A module object publishes it as an attribute; anything else must be the
    callable itself.
    """
    if isinstance(module_exports, ModuleType):
        for name in EXPORT_NAMES:
            target = getattr(module_exports, name, None)
            if callable(target):
                return ModuleShape.NAMESPACE, target
        return ModuleShape.UNSUPPORTED, None
    if callable(module_exports):
        return ModuleShape.CALLABLE, module_exports
    return ModuleShape.UNSUPPORTED, None


def _public_names(value):
    # type: (Any) -> List[str]
    names = value.keys() if isinstance(value, Mapping) else getattr(value, "__dict__", {})
    return sorted(str(name) for name in names if not str(name).startswith("_"))


@attr.s(frozen=True, slots=True)
class PatchRecord(object):
    wrapper = attr.ib()
    original = attr.ib()


# id(wrapper) -> PatchRecord; the record holds the wrapper so the id cannot be reused
_PATCHES = {}  # type: Dict[int, PatchRecord]


def _patch_record(obj):
    # type: (Any) -> Optional[PatchRecord]
    record = _PATCHES.get(id(obj))
    if record is not None and record.wrapper is obj:
        return record
    return None


class _InjectWrapper(wrapt.FunctionWrapper):
    """Traced ``inject``, also reachable under the aliases the module exports it as."""

    @property
    def default(self):
        return self

    @property
    def inject(self):
        return self


@contextmanager
def _activated(ctx):
    token = otel_context.attach(ctx)
    try:
        yield
    finally:
        otel_context.detach(token)


# built-in errors whose ``name`` is the missing module, variable or attribute
_NAME_CARRYING_ERRORS = (ImportError, NameError, AttributeError)


def _error_type(error):
    # type: (Any) -> str
    name = getattr(error, "name", None)
    if isinstance(name, str) and name and not isinstance(error, _NAME_CARRYING_ERRORS):
        return name
    return getattr(type(error), "__name__", None) or OTHER_ERROR_TYPE


def _set_response(span, response):
    # type: (trace.Span, Any) -> None
    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not status_code:
        status_code = DEFAULT_STATUS_CODE
    span.set_attribute(HTTP_RESPONSE_STATUS_CODE, status_code)

    if status_code >= 400:
        span.set_attribute(ERROR_TYPE, str(status_code))
        span.set_status(Status(StatusCode.ERROR))
    else:
        span.set_status(Status(StatusCode.OK))


def _set_error(span, error):
    # type: (trace.Span, Any) -> None
    if isinstance(error, BaseException):
        span.record_exception(error)
    span.set_attribute(ERROR_TYPE, _error_type(error))
    span.set_status(Status(StatusCode.ERROR, str(error)))


class InjectSpan(object):
    """The span of a single ``inject`` call.

    Exactly one of the completion paths (callback, future or awaitable) is attached
    per call and all of them end up in :meth:`finish`, which only acts the first
    time it is called.
    """

    __slots__ = ("span", "_instrumentation", "_finished")

    def __init__(self, span, instrumentation):
        # type: (trace.Span, LightMyRequestInstrumentation) -> None
        self.span = span
        self._instrumentation = instrumentation
        self._finished = False

    def on_request(self, options):
        # type: (Dict[str, Any]) -> None
        self._instrumentation._run_hook("request", self.span, options)

    def finish(self, response=None, error=None):
        # type: (Any, Any) -> None
        if self._finished:
            return
        self._finished = True
        try:
            if error is not None:
                _set_error(self.span, error)
            else:
                _set_response(self.span, response)
                self._instrumentation._run_hook("response", self.span, response)
        finally:
            self.span.end()

    def wrap_callback(self, callback):
        # type: (Callable[..., Any]) -> Callable[..., Any]
        @functools.wraps(callback)
        def wrapped_callback(error, response=None, *args, **kwargs):
            if error is not None:
                self.finish(error=error)
            elif response is not None:
                self.finish(response=response)
            return callback(error, response, *args, **kwargs)

        return wrapped_callback

    def on_done(self, future):
        # type: (asyncio.Future) -> None
        if future.cancelled():
            self.finish(error=asyncio.CancelledError())
            return
        error = future.exception()
        if error is not None:
            self.finish(error=error)
        else:
            self.finish(response=future.result())

    async def wait_for(self, awaitable, ctx):
        with _activated(ctx):
            try:
                response = await awaitable
            except BaseException as e:
                self.finish(error=e)
                raise
        self.finish(response=response)
        return response


def _traced_inject(instrumentation):
    # type: (LightMyRequestInstrumentation) -> Callable[..., Any]
    def traced_inject(wrapped, instance, args, kwargs):
        dispatch = get_argument_value(args, kwargs, 0, "dispatch", optional=True)
        options = get_argument_value(args, kwargs, 1, "options", optional=True)
        callback = get_argument_value(args, kwargs, 2, "callback", optional=True)

        request = request_descriptor(options)

        parent = otel_context.get_current()
        if request.headers and config.light_my_request.distributed_tracing:
            parent = propagate.extract(request.headers, context=parent)

        span = instrumentation.tracer.start_span(
            request.span_name,
            context=parent,
            kind=SpanKind.SERVER,
            attributes=span_attributes(request),
        )
        call = InjectSpan(span, instrumentation)
        call.on_request(request.options)

        ctx = trace.set_span_in_context(span, parent)
        if callable(callback):
            with _activated(ctx):
                try:
                    return wrapped(dispatch, request.options, call.wrap_callback(callback))
                except BaseException as e:
                    call.finish(error=e)
                    raise

        with _activated(ctx):
            try:
                result = wrapped(dispatch, request.options)
            except BaseException as e:
                call.finish(error=e)
                raise

        if asyncio.isfuture(result):
            # already scheduled, the caller keeps the future itself
            result.add_done_callback(call.on_done)
            return result
        if not inspect.isawaitable(result):
            log.debug("%s.inject returned %s instead of an awaitable", MODULE_NAME, type(result).__name__)
            return result
        return call.wait_for(result, ctx)

    return traced_inject


class LightMyRequestInstrumentation(object):
    """Traces ``light_my_request.inject`` calls as SERVER spans.

    Example::

        from lmrtrace.contrib.light_my_request import LightMyRequestInstrumentation

        instrumentation = LightMyRequestInstrumentation(request_hook=on_request)
        instrumentation.enable()

        import light_my_request

    :param request_hook: called with ``(span, options)`` once the span is started
    :param response_hook: called with ``(span, response)`` before the span ends
    :param tracer_provider: provider to get the tracer from, defaults to the global one
    """

    def __init__(self, request_hook=None, response_hook=None, tracer_provider=None):
        self._request_hook = request_hook
        self._response_hook = response_hook
        self._tracer_provider = tracer_provider
        self._enabled = False
        self._module_exports = None  # type: Any
        self._module_version = None  # type: Optional[str]

    @property
    def tracer(self):
        # type: () -> trace.Tracer
        return trace.get_tracer(__name__, __version__, self._tracer_provider)

    def set_tracer_provider(self, tracer_provider):
        self._tracer_provider = tracer_provider

    @property
    def enabled(self):
        # type: () -> bool
        return self._enabled

    @property
    def module_exports(self):
        """The patched module value once ``light_my_request`` has been imported."""
        return self._module_exports

    def enable(self):
        # type: () -> None
        if self._enabled:
            return
        self._enabled = True
        when_imported(MODULE_NAME)(self._on_import)

    def disable(self):
        # type: () -> None
        if not self._enabled:
            return
        self._enabled = False
        if self._module_exports is not None:
            self._unpatch(self._module_exports, self._module_version)
            self._module_exports = None

    def _on_import(self, module):
        if not self._enabled or self._module_exports is not None:
            return

        version = get_version()
        # no version means we cannot tell, patch anyway
        if version and not is_version_compatible(version, SUPPORTED_VERSIONS):
            log.error(
                "Skipped patching %s, installed version: %s is not compatible with %s",
                MODULE_NAME,
                version,
                SUPPORTED_VERSIONS,
            )
            return

        _, target = resolve_module_shape(module)
        if target is not None and _patch_record(target) is not None:
            # removal stays with the instrumentation that installed the wrapper
            log.debug("%s is already patched by another instrumentation", MODULE_NAME)
            return

        self._module_version = version
        self._module_exports = self._patch(module, version)

    def _run_hook(self, name, span, arg):
        hook = self._request_hook if name == "request" else self._response_hook
        if hook is not None:
            try:
                hook(span, arg)
            except Exception:
                log.error("%s_hook threw an error", name, exc_info=True)
        config.light_my_request.hooks.emit(name, span, arg)

    def _patch(self, module_exports, module_version):
        """Return ``module_exports`` with ``inject`` replaced by its traced version."""
        log.debug("Applying patch for %s@%s", MODULE_NAME, module_version)

        shape, target = resolve_module_shape(module_exports)
        if shape is ModuleShape.UNSUPPORTED:
            log.warning(
                "%s@%s module export is not a function or a module exposing one (type: %s). Keys: [%s]. Cannot patch.",
                MODULE_NAME,
                module_version,
                type(module_exports).__name__,
                ", ".join(_public_names(module_exports)),
            )
            return module_exports

        if _patch_record(target) is not None:
            log.debug("%s@%s is already patched", MODULE_NAME, module_version)
            return module_exports

        wrapper = _InjectWrapper(target, _traced_inject(self))
        _PATCHES[id(wrapper)] = PatchRecord(wrapper=wrapper, original=target)

        if shape is ModuleShape.CALLABLE:
            return wrapper

        for name in EXPORT_NAMES:
            if getattr(module_exports, name, None) is target:
                setattr(module_exports, name, wrapper)
        return module_exports

    def _unpatch(self, module_exports, module_version):
        """Undo :meth:`_patch`. Values it did not patch are returned as they are."""
        log.debug("Removing patch for %s@%s", MODULE_NAME, module_version)

        if isinstance(module_exports, ModuleType):
            restored = set()
            for name in EXPORT_NAMES:
                record = _patch_record(getattr(module_exports, name, None))
                if record is not None:
                    unwrap(module_exports, name)
                    restored.add(id(record.wrapper))
            for key in restored:
                del _PATCHES[key]
            return module_exports

        record = _patch_record(module_exports)
        if record is None:
            return module_exports
        del _PATCHES[id(record.wrapper)]
        return record.original


_instrumentation = None  # type: Optional[LightMyRequestInstrumentation]


def patch():
    # type: () -> None
    """Trace ``light_my_request.inject`` using the hooks set on ``config.light_my_request``."""
    global _instrumentation

    import light_my_request

    if getattr(light_my_request, "_lmrtrace_patch", False):
        return
    light_my_request._lmrtrace_patch = True

    _instrumentation = LightMyRequestInstrumentation(
        request_hook=config.light_my_request.get("request_hook"),
        response_hook=config.light_my_request.get("response_hook"),
    )
    _instrumentation._patch(light_my_request, get_version())


def unpatch():
    # type: () -> None
    global _instrumentation

    import light_my_request

    if not getattr(light_my_request, "_lmrtrace_patch", False):
        return
    light_my_request._lmrtrace_patch = False

    if _instrumentation is not None:
        _instrumentation._unpatch(light_my_request, get_version())
        _instrumentation = None
