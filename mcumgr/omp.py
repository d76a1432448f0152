"""OIC Management Protocol: management requests carried inside a CBOR map.

Requests and responses are CBOR maps.  The management header travels as a
byte string under the ``"_h"`` key, in network byte order.  Command-specific
key-value pairs share the same map.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Callable

import cbor2

from .mgmt import (
    HDR_SIZE,
    MgmtContext,
    MgmtErr,
    MgmtError,
    MgmtHeader,
    Op,
    Registry,
)

HDR_KEY = "_h"

Transmit = Callable[[dict], None]


def encode_mgmt_hdr(hdr: MgmtHeader) -> dict:
    """Return the map entry that carries ``hdr`` in a response."""
    try:
        return {HDR_KEY: hdr.to_bytes()}
    except ValueError as exc:
        raise MgmtError(MgmtErr.ENOMEM) from exc


def send_err_rsp(hdr: MgmtHeader, status: int) -> dict:
    """Return the map entries of an error response: header and status."""
    entries = encode_mgmt_hdr(hdr)
    entries["rc"] = int(status)
    return entries


def read_hdr(request: Any) -> MgmtHeader:
    """Extract the management header from a decoded request map."""
    if not isinstance(request, Mapping) or HDR_KEY not in request:
        raise MgmtError(MgmtErr.EINVAL, "request carries no header")
    raw = request[HDR_KEY]
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != HDR_SIZE:
        raise MgmtError(MgmtErr.EINVAL, "malformed request header")
    return MgmtHeader.from_bytes(bytes(raw))


def process_mgmt_hdr(
    registry: Registry, req_hdr: MgmtHeader, ctxt: MgmtContext
) -> MgmtHeader:
    """Dispatch a request to its handler and add the header to the response.

    Returns the response header.  A handler failure is reported inside the
    response (as ``"rc"``) rather than raised.
    """
    handler = registry.find_handler(req_hdr.group, req_hdr.command_id)
    if handler is None:
        raise MgmtError(MgmtErr.ENOENT)

    rsp_hdr = dataclasses.replace(req_hdr)
    if req_hdr.op == Op.READ:
        rsp_hdr.op = Op.READ_RSP
        handler_fn = handler.read
    elif req_hdr.op == Op.WRITE:
        rsp_hdr.op = Op.WRITE_RSP
        handler_fn = handler.write
    else:
        handler_fn = None

    if handler_fn is None:
        # The missing-handler status goes through the CBOR error mapping,
        # which reports anything but success or out-of-memory as unknown.
        raise MgmtError(MgmtErr.EUNKNOWN)

    try:
        handler_fn(ctxt)
    except MgmtError as exc:
        ctxt.response.update(send_err_rsp(rsp_hdr, exc.code))
    else:
        ctxt.response.update(encode_mgmt_hdr(rsp_hdr))
    return rsp_hdr


class OmpServer:
    """Processes OMP request maps and transmits the response map."""

    def __init__(self, registry: Registry, transmit: Transmit) -> None:
        self.registry = registry
        self._transmit = transmit

    def process_request_packet(self, request: Any) -> dict:
        """Handle one request (CBOR bytes or a decoded map); return the response.

        Any failure to read or dispatch the request raises MgmtError(EINVAL)
        and nothing is transmitted.
        """
        if isinstance(request, Mapping):
            decoded = request
        else:
            try:
                decoded = cbor2.loads(bytes(request))
            except (cbor2.CBORDecodeError, ValueError, TypeError) as exc:
                raise MgmtError(MgmtErr.EINVAL, "undecodable request") from exc

        req_hdr = read_hdr(decoded)
        ctxt = MgmtContext(request=decoded)
        try:
            process_mgmt_hdr(self.registry, req_hdr, ctxt)
        except MgmtError as exc:
            raise MgmtError(MgmtErr.EINVAL) from exc

        self._transmit(ctxt.response)
        return ctxt.response