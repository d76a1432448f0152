"""Simple Management Protocol: request packet processing over a registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import cbor2

from .mgmt import (
    HDR_SIZE,
    EvtOp,
    MgmtContext,
    MgmtErr,
    MgmtError,
    MgmtHeader,
    Op,
    Registry,
    err_from_cbor,
    write_rsp_status,
)

Transmit = Callable[[bytes], None]


@dataclass
class CmdDoneArg:
    """Argument passed with a CMD_DONE event."""

    err: int


@dataclass
class _Outcome:
    handler_found: bool = False


def align4(x: int) -> int:
    """Round ``x`` up to the next multiple of four."""
    rem = x % 4
    return x if rem == 0 else x - rem + 4


def response_op(req_op: int) -> Op:
    """Return the response opcode that answers a request opcode."""
    return Op.READ_RSP if req_op == Op.READ else Op.WRITE_RSP


def _response_header(req_hdr: MgmtHeader) -> MgmtHeader:
    return MgmtHeader(
        op=response_op(req_hdr.op),
        flags=0,
        length=0,
        group=req_hdr.group,
        seq=req_hdr.seq,
        command_id=req_hdr.command_id,
    )


def _encode_response(rsp_hdr: MgmtHeader, body: dict) -> bytes:
    try:
        payload = cbor2.dumps(body)
    except (cbor2.CBOREncodeError, MemoryError) as exc:
        raise MgmtError(err_from_cbor(exc)) from exc
    rsp_hdr.length = len(payload)
    try:
        header = rsp_hdr.to_bytes()
    except ValueError as exc:
        raise MgmtError(MgmtErr.EMSGSIZE) from exc
    return header + payload


def build_error_response(req_hdr: MgmtHeader, status: int) -> bytes:
    """Build a complete response carrying only the status ``status``."""
    ctxt = MgmtContext()
    write_rsp_status(ctxt, status)
    return _encode_response(_response_header(req_hdr), ctxt.response)


class SmpServer:
    """Processes SMP request packets and transmits one response per request."""

    def __init__(self, registry: Registry, transmit: Transmit) -> None:
        self.registry = registry
        self._transmit = transmit

    def handle_single_request(self, req_hdr: MgmtHeader, payload: bytes) -> bytes:
        """Run one request and return its complete response (header and body)."""
        return self._handle(req_hdr, payload, _Outcome())

    def _handle(self, req_hdr: MgmtHeader, payload: bytes, outcome: _Outcome) -> bytes:
        ctxt = MgmtContext.from_payload(payload)

        handler = self.registry.find_handler(req_hdr.group, req_hdr.command_id)
        if handler is None:
            raise MgmtError(MgmtErr.ENOTSUP)

        if req_hdr.op == Op.READ:
            handler_fn = handler.read
        elif req_hdr.op == Op.WRITE:
            handler_fn = handler.write
        else:
            raise MgmtError(MgmtErr.EINVAL)

        if handler_fn is None:
            raise MgmtError(MgmtErr.ENOTSUP)

        outcome.handler_found = True
        self.registry.evt(EvtOp.CMD_RECV, req_hdr.group, req_hdr.command_id, None)
        handler_fn(ctxt)

        return _encode_response(_response_header(req_hdr), ctxt.response)

    def _on_error(self, req_hdr: MgmtHeader, status: int) -> None:
        try:
            rsp = build_error_response(req_hdr, status)
        except MgmtError:
            return
        try:
            self._transmit(rsp)
        except MgmtError:
            pass

    def process_request_packet(self, packet: bytes) -> int:
        """Process every request in ``packet`` in order; return how many succeeded.

        Each request starts on a four-byte boundary after the previous
        payload.  On failure an error response is transmitted and the
        MgmtError is raised, aborting the rest of the packet.
        """
        remaining = bytes(packet)
        handled = 0

        while len(remaining) >= HDR_SIZE:
            req_hdr = MgmtHeader.from_bytes(remaining)
            remaining = remaining[HDR_SIZE:]
            outcome = _Outcome()

            try:
                rsp = self._handle(req_hdr, remaining, outcome)
                self._transmit(rsp)
            except MgmtError as exc:
                self._on_error(req_hdr, exc.code)
                if outcome.handler_found:
                    self.registry.evt(
                        EvtOp.CMD_DONE,
                        req_hdr.group,
                        req_hdr.command_id,
                        CmdDoneArg(int(exc.code)),
                    )
                raise

            remaining = remaining[align4(req_hdr.length):]
            handled += 1
            self.registry.evt(
                EvtOp.CMD_DONE,
                req_hdr.group,
                req_hdr.command_id,
                CmdDoneArg(MgmtErr.EOK),
            )

        return handled