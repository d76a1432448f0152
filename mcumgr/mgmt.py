"""Core management layer: header codec, error codes and the handler registry."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional, Sequence

import cbor2

MAX_MTU = 1024
HDR_SIZE = 8

_HDR_STRUCT = struct.Struct(">BBHHBB")


class MgmtErr(IntEnum):
    """Management error codes."""

    EOK = 0
    EUNKNOWN = 1
    ENOMEM = 2
    EINVAL = 3
    ETIMEOUT = 4
    ENOENT = 5
    EBADSTATE = 6
    EMSGSIZE = 7
    ENOTSUP = 8
    ECORRUPT = 9
    EPERUSER = 256


class Op(IntEnum):
    """Opcodes carried in the low three bits of the first header byte."""

    READ = 0
    READ_RSP = 1
    WRITE = 2
    WRITE_RSP = 3


class GroupId(IntEnum):
    """Command group identifiers; groups below PERUSER are reserved."""

    OS = 0
    IMAGE = 1
    STAT = 2
    CONFIG = 3
    LOG = 4
    CRASH = 5
    SPLIT = 6
    RUN = 7
    FS = 8
    SHELL = 9
    PERUSER = 64


class EvtOp(IntEnum):
    """Management event opcodes."""

    CMD_RECV = 0x01
    CMD_STATUS = 0x02
    CMD_DONE = 0x03


class MgmtError(Exception):
    """A management operation failed with a management error code."""

    def __init__(self, code: int, message: Optional[str] = None) -> None:
        try:
            code = MgmtErr(code)
        except ValueError:
            code = int(code)
        self.code = code
        super().__init__(message or f"management error {int(code)}")


@dataclass
class MgmtHeader:
    """The 8-byte header that precedes every management request and response."""

    op: int = Op.READ
    flags: int = 0
    length: int = 0
    group: int = 0
    seq: int = 0
    command_id: int = 0

    def to_bytes(self) -> bytes:
        """Encode the header in network byte order."""
        try:
            return _HDR_STRUCT.pack(
                int(self.op) & 0x07,
                self.flags,
                self.length,
                self.group,
                self.seq,
                self.command_id,
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> "MgmtHeader":
        """Decode a header from the first eight bytes of ``data``."""
        if len(data) < HDR_SIZE:
            raise MgmtError(MgmtErr.EINVAL, "message shorter than header")
        op_byte, flags, length, group, seq, command_id = _HDR_STRUCT.unpack(
            bytes(data[:HDR_SIZE])
        )
        op = op_byte & 0x07
        try:
            op = Op(op)
        except ValueError:
            pass
        return cls(
            op=op,
            flags=flags,
            length=length,
            group=group,
            seq=seq,
            command_id=command_id,
        )


HandlerFn = Callable[["MgmtContext"], None]


@dataclass
class Handler:
    """Read and write handlers for a single command ID."""

    read: Optional[HandlerFn] = None
    write: Optional[HandlerFn] = None


@dataclass
class Group:
    """All handlers of one command group, indexed by command ID."""

    group_id: int
    handlers: Sequence[Optional[Handler]] = field(default_factory=list)


@dataclass
class MgmtContext:
    """Request being parsed and response map being built by a handler."""

    request: Any = None
    response: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: bytes) -> "MgmtContext":
        """Create a context whose request is the first CBOR item in ``payload``."""
        try:
            request = cbor2.CBORDecoder(io.BytesIO(bytes(payload))).decode()
        except (cbor2.CBORDecodeError, MemoryError) as exc:
            raise MgmtError(err_from_cbor(exc)) from exc
        return cls(request=request)


EvtCallback = Callable[[int, int, int, Any], None]


class Registry:
    """Registered command groups and the optional event callback."""

    def __init__(self) -> None:
        self._groups: list[Group] = []
        self._evt_cb: Optional[EvtCallback] = None

    @property
    def groups(self) -> tuple[Group, ...]:
        return tuple(self._groups)

    def register_group(self, group: Group) -> None:
        """Append a group to the end of the list."""
        self._groups.append(group)

    def unregister_group(self, group: Optional[Group]) -> None:
        """Remove a previously registered group; unknown groups are ignored."""
        if group is None:
            return
        for i, registered in enumerate(self._groups):
            if registered is group:
                del self._groups[i]
                return

    def find_handler(self, group_id: int, command_id: int) -> Optional[Handler]:
        """Return the handler for a group/command pair, or None if there is none."""
        for group in self._groups:
            if group.group_id != group_id:
                continue
            if command_id >= len(group.handlers):
                return None
            handler = group.handlers[command_id]
            if handler is None or (handler.read is None and handler.write is None):
                continue
            return handler
        return None

    def register_evt_cb(self, cb: Optional[EvtCallback]) -> None:
        """Set (or clear, with None) the event callback."""
        self._evt_cb = cb

    def evt(self, opcode: int, group: int, command_id: int, arg: Any = None) -> None:
        """Notify the event callback, if one is registered."""
        if self._evt_cb is not None:
            self._evt_cb(opcode, group, command_id, arg)


def write_rsp_status(ctxt: MgmtContext, status: int) -> None:
    """Store a response status under the "rc" key."""
    ctxt.response["rc"] = int(status)


def err_from_cbor(exc: Optional[BaseException]) -> MgmtErr:
    """Map a CBOR failure (or None for success) to a management error code."""
    if exc is None:
        return MgmtErr.EOK
    if isinstance(exc, MemoryError):
        return MgmtErr.ENOMEM
    return MgmtErr.EUNKNOWN