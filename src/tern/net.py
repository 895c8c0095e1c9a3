"""DNS resolution order for the connections tern opens itself."""

import http.client
import logging
import socket
import ssl
from functools import partial
from typing import cast
from urllib.request import HTTPSHandler, OpenerDirector, build_opener

from tern.models.settings import DnsResolutionOrder

log = logging.getLogger(__name__)

DEFAULT_DNS_RESOLUTION_ORDER: DnsResolutionOrder = "ipv4first"


def validate_dns_resolution_order(order: str | None) -> DnsResolutionOrder:
    """Return a supported resolution order, warning and defaulting on bad input."""
    if order is None:
        return DEFAULT_DNS_RESOLUTION_ORDER
    if order in ("ipv4first", "verbatim"):
        return cast(DnsResolutionOrder, order)
    log.warning(
        'Invalid value for dnsResolutionOrder in settings: "%s". Using default "%s".',
        order,
        DEFAULT_DNS_RESOLUTION_ORDER,
    )
    return DEFAULT_DNS_RESOLUTION_ORDER


def order_addresses(infos: list, order: DnsResolutionOrder) -> list:
    """Order getaddrinfo results; ipv4first keeps the resolver's order within a family."""
    if order == "ipv4first":
        return sorted(infos, key=lambda info: info[0] != socket.AF_INET)
    return list(infos)


def create_connection(
    address: tuple[str, int],
    timeout: object = None,
    source_address: tuple[str, int] | None = None,
    *,
    order: DnsResolutionOrder = DEFAULT_DNS_RESOLUTION_ORDER,
) -> socket.socket:
    """Connect to the first reachable address, trying them in `order`."""
    host, port = address
    infos = order_addresses(socket.getaddrinfo(host, port, type=socket.SOCK_STREAM), order)
    last_error: OSError | None = None
    for family, socktype, proto, _, sockaddr in infos:
        sock = socket.socket(family, socktype, proto)
        try:
            if isinstance(timeout, (int, float)):
                sock.settimeout(timeout)
            if source_address is not None:
                sock.bind(source_address)
            sock.connect(sockaddr)
            return sock
        except OSError as e:
            last_error = e
            sock.close()
    if last_error is not None:
        raise last_error
    raise OSError(f"no addresses found for {host}")


class OrderedHTTPSConnection(http.client.HTTPSConnection):
    def __init__(self, *args, order: DnsResolutionOrder, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._create_connection = partial(create_connection, order=order)


class OrderedHTTPSHandler(HTTPSHandler):
    """urllib handler whose connections follow the configured resolution order."""

    def __init__(self, order: DnsResolutionOrder) -> None:
        self._ssl_context = ssl.create_default_context()
        super().__init__(context=self._ssl_context)
        self._order = order

    def https_open(self, req):
        return self.do_open(
            partial(OrderedHTTPSConnection, order=self._order), req, context=self._ssl_context
        )


def build_ordered_opener(order: DnsResolutionOrder) -> OpenerDirector:
    return build_opener(OrderedHTTPSHandler(order))
