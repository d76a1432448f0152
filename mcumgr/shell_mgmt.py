"""Shell management command group: run a shell command and return its output."""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from typing import Any, Optional

from .mgmt import (
    Group,
    GroupId,
    Handler,
    MgmtContext,
    MgmtErr,
    MgmtError,
    Registry,
)

DEFAULT_MAX_LINE_LEN = 256
DEFAULT_MAX_ARGC = 20


class ShellCommand(IntEnum):
    """Command IDs of the shell management group."""

    EXEC = 0


class ShellBackend:
    """Host-specific shell support.

    The defaults report that the host has no shell; subclass to provide one.
    """

    def execute(self, line: str) -> int:
        """Execute ``line`` as a shell command and return its status."""
        return int(MgmtErr.ENOTSUP)

    def get_output(self) -> str:
        """Return the text output of the last executed command."""
        return ""


class ShellMgmt:
    """Handlers of the shell management group."""

    def __init__(
        self,
        backend: Optional[ShellBackend] = None,
        *,
        max_line_len: int = DEFAULT_MAX_LINE_LEN,
        max_argc: int = DEFAULT_MAX_ARGC,
    ) -> None:
        self.backend = backend if backend is not None else ShellBackend()
        self.max_line_len = max_line_len
        self.max_argc = max_argc
        self._group = Group(
            group_id=GroupId.SHELL,
            handlers=(Handler(write=self.exec_command),),
        )

    def _read_line(self, request: Any) -> str:
        if not isinstance(request, Mapping):
            raise MgmtError(MgmtErr.EINVAL, "request is not a map")
        argv = request.get("argv", [])
        if not isinstance(argv, (list, tuple)):
            raise MgmtError(MgmtErr.EINVAL, "argv is not an array")
        if len(argv) > self.max_argc:
            raise MgmtError(MgmtErr.EINVAL, "too many arguments")
        if not all(isinstance(arg, str) for arg in argv):
            raise MgmtError(MgmtErr.EINVAL, "argv holds a non-string")
        line = " ".join(argv)
        if len(line.encode("utf-8")) > self.max_line_len:
            raise MgmtError(MgmtErr.EINVAL, "command line too long")
        return line

    def exec_command(self, ctxt: MgmtContext) -> None:
        """Run the request's "argv" and reply with output "o" and status "rc"."""
        line = self._read_line(ctxt.request)
        rc = self.backend.execute(line)
        ctxt.response["o"] = self.backend.get_output()
        ctxt.response["rc"] = int(rc)

    def group(self) -> Group:
        """Return the command group holding this object's handlers."""
        return self._group

    def register(self, registry: Registry) -> None:
        """Register the shell management group with ``registry``."""
        registry.register_group(self._group)