from collections.abc import Mapping
from typing import Any
from typing import Dict
from typing import Optional

import attr
from opentelemetry.semconv.attributes.client_attributes import CLIENT_ADDRESS
from opentelemetry.semconv.attributes.http_attributes import HTTP_REQUEST_METHOD
from opentelemetry.semconv.attributes.network_attributes import NETWORK_PROTOCOL_VERSION
from opentelemetry.semconv.attributes.server_attributes import SERVER_ADDRESS
from opentelemetry.semconv.attributes.server_attributes import SERVER_PORT
from opentelemetry.semconv.attributes.url_attributes import URL_FULL
from opentelemetry.semconv.attributes.url_attributes import URL_PATH
from opentelemetry.semconv.attributes.url_attributes import URL_QUERY
from opentelemetry.semconv.attributes.url_attributes import URL_SCHEME
from opentelemetry.semconv.attributes.user_agent_attributes import USER_AGENT_ORIGINAL

from ...internal.logger import get_logger


log = get_logger(__name__)

DEFAULT_METHOD = "GET"
DEFAULT_URL = "/"
# inject never goes over the wire
DEFAULT_SCHEME = "http"


@attr.s(frozen=True, slots=True)
class RequestDescriptor(object):
    """Normalized, read-only view of the arguments of one ``inject`` call."""

    method = attr.ib(type=str, default=DEFAULT_METHOD)
    url = attr.ib(type=str, default=DEFAULT_URL)
    headers = attr.ib(type=Optional[Mapping], default=None)
    remote_address = attr.ib(type=Optional[str], default=None)
    # shallow copy of the caller's options, handed to the delegate and the request hook
    options = attr.ib(type=Dict[str, Any], factory=dict, repr=False)

    @property
    def span_name(self):
        # type: () -> str
        return "{} {}".format(self.method, self.url)


def _is_url_like(value):
    # type: (Any) -> bool
    return callable(getattr(value, "geturl", None))


def normalize_options(options):
    # type: (Any) -> Dict[str, Any]
    """Return a new options dict for the ``options`` argument of ``inject``.

    A bare string or URL-like value becomes ``{"url": ...}``; a mapping is
    shallow-copied. Anything else is treated as no options at all.
    """
    if isinstance(options, str):
        return {"url": options}
    if _is_url_like(options):
        return {"url": options.geturl()}
    if isinstance(options, Mapping):
        return dict(options)
    if options is not None:
        log.debug("ignoring inject options of unsupported type %s", type(options).__name__)
    return {}


def request_descriptor(options):
    # type: (Any) -> RequestDescriptor
    opts = normalize_options(options)

    method = opts.get("method")
    method = method.upper() if isinstance(method, str) and method else DEFAULT_METHOD

    url = opts.get("url")
    if _is_url_like(url):
        url = url.geturl()
    if not isinstance(url, str) or not url:
        url = DEFAULT_URL

    headers = opts.get("headers")
    if not isinstance(headers, Mapping):
        headers = None

    remote_address = opts.get("remoteAddress", opts.get("remote_address"))
    if not isinstance(remote_address, str) or not remote_address:
        remote_address = None

    return RequestDescriptor(
        method=method,
        url=url,
        headers=headers,
        remote_address=remote_address,
        options=opts,
    )


def get_header(headers, *names):
    # type: (Optional[Mapping], str) -> Optional[str]
    """Return the first non-empty string value found under any of ``names``."""
    if not headers:
        return None
    for name in names:
        value = headers.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def parse_host(host):
    # type: (str) -> Dict[str, Any]
    """Split a Host header value on its first colon into server attributes."""
    address, _, port = host.partition(":")
    attributes = {}  # type: Dict[str, Any]
    if address:
        attributes[SERVER_ADDRESS] = address
    if port:
        try:
            attributes[SERVER_PORT] = int(port, 10)
        except ValueError:
            log.debug("ignoring non numeric port in host header %r", host)
    return attributes


def span_attributes(request):
    # type: (RequestDescriptor) -> Dict[str, Any]
    """Build the span attributes for ``request``.

    Optional attributes are left out entirely when there is nothing to set.
    """
    path, _, query = request.url.partition("?")
    attributes = {
        HTTP_REQUEST_METHOD: request.method,
        URL_FULL: request.url,
        URL_PATH: path,
        URL_SCHEME: DEFAULT_SCHEME,
    }  # type: Dict[str, Any]

    if query:
        attributes[URL_QUERY] = query

    if request.remote_address:
        attributes[CLIENT_ADDRESS] = request.remote_address

    headers = request.headers
    user_agent = get_header(headers, "user-agent", "User-Agent")
    if user_agent:
        attributes[USER_AGENT_ORIGINAL] = user_agent

    protocol_version = get_header(headers, "http-version", "httpVersion")
    if protocol_version:
        attributes[NETWORK_PROTOCOL_VERSION] = protocol_version

    host = get_header(headers, "host", "Host")
    if host:
        attributes.update(parse_host(host))

    return attributes
