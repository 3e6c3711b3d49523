"""
The light_my_request integration traces every ``light_my_request.inject``
call as a ``SERVER`` span, for both the callback and the awaitable calling
conventions.

Enabling
~~~~~~~~

Use :ref:`patch()<patch>` to enable the integration once
``light_my_request`` is imported::

    from lmrtrace import patch
    patch(light_my_request=True)

    import light_my_request

    response = await light_my_request.inject(dispatch, {"method": "GET", "url": "/"})

Or create an instrumentation with its own hooks and tracer provider::

    from lmrtrace.contrib.light_my_request import LightMyRequestInstrumentation

    def request_hook(span, options):
        span.set_attribute("app.route", options["url"])

    LightMyRequestInstrumentation(request_hook=request_hook, tracer_provider=provider).enable()

Span attributes follow the OpenTelemetry HTTP server semantic conventions.
Trace context found in the request headers (``traceparent`` by default)
becomes the parent of the span.


Global Configuration
~~~~~~~~~~~~~~~~~~~~

.. py:data:: lmrtrace.config.light_my_request['distributed_tracing']

   Whether to parent spans on the trace context carried by the request headers.

   This option can also be set with the
   ``LMRTRACE_LIGHT_MY_REQUEST_DISTRIBUTED_TRACING`` environment variable.

   Default: ``True``


.. py:data:: lmrtrace.config.light_my_request['request_hook']

   Callable invoked with ``(span, options)`` after the span starts, used by
   :ref:`patch()<patch>`.

   Default: ``None``


.. py:data:: lmrtrace.config.light_my_request['response_hook']

   Callable invoked with ``(span, response)`` before the span ends, used by
   :ref:`patch()<patch>`.

   Default: ``None``

Additional hooks can be registered on ``config.light_my_request.hooks`` under
the ``"request"`` and ``"response"`` names. Exceptions raised by any hook are
logged and never change the traced call.
"""
from .patch import LightMyRequestInstrumentation
from .patch import get_version
from .patch import patch
from .patch import unpatch


__all__ = [
    "LightMyRequestInstrumentation",
    "get_version",
    "patch",
    "unpatch",
]
