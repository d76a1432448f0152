"""OS management command group: echo, task statistics and reset."""

from __future__ import annotations

import itertools
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .mgmt import (
    Group,
    GroupId,
    Handler,
    MgmtContext,
    MgmtErr,
    MgmtError,
    Registry,
)

TASK_NAME_LEN = 32
ECHO_BUF_LEN = 128
DEFAULT_RESET_MS = 250


class OsCommand(IntEnum):
    """Command IDs of the OS management group."""

    ECHO = 0
    CONS_ECHO_CTRL = 1
    TASKSTAT = 2
    MPSTAT = 3
    DATETIME_STR = 4
    RESET = 5


@dataclass
class TaskInfo:
    """Statistics describing one task."""

    name: str
    prio: int = 0
    taskid: int = 0
    state: int = 0
    stkusage: int = 0
    stksize: int = 0
    cswcnt: int = 0
    runtime: int = 0
    last_checkin: int = 0
    next_checkin: int = 0


class OsBackend:
    """Host-specific task and reset support.

    The defaults report that the host supports neither; subclass to provide them.
    """

    def task_info(self, idx: int) -> Optional[TaskInfo]:
        """Return the task at ``idx``, or None when there is no such task."""
        raise MgmtError(MgmtErr.ENOTSUP)

    def reset(self, delay_ms: int) -> None:
        """Schedule a system reset ``delay_ms`` milliseconds from now."""
        raise MgmtError(MgmtErr.ENOTSUP)


class OsMgmt:
    """Handlers of the OS management group."""

    def __init__(
        self,
        backend: Optional[OsBackend] = None,
        *,
        reset_ms: int = DEFAULT_RESET_MS,
        echo: bool = True,
        taskstat: bool = True,
    ) -> None:
        self.backend = backend if backend is not None else OsBackend()
        self.reset_ms = reset_ms

        handlers: list[Optional[Handler]] = [None] * (OsCommand.RESET + 1)
        if echo:
            handlers[OsCommand.ECHO] = Handler(read=self.echo, write=self.echo)
        if taskstat:
            handlers[OsCommand.TASKSTAT] = Handler(read=self.taskstat_read)
        handlers[OsCommand.RESET] = Handler(write=self.reset)
        self._group = Group(group_id=GroupId.OS, handlers=tuple(handlers))

    def echo(self, ctxt: MgmtContext) -> None:
        """Reply with the request's "d" string under "r"."""
        request = ctxt.request
        if not isinstance(request, Mapping):
            raise MgmtError(MgmtErr.EINVAL)
        text = request.get("d", "")
        if not isinstance(text, str):
            raise MgmtError(MgmtErr.EINVAL)
        if len(text.encode("utf-8")) >= ECHO_BUF_LEN:
            raise MgmtError(MgmtErr.EINVAL)
        ctxt.response["r"] = text.split("\x00", 1)[0]

    def taskstat_read(self, ctxt: MgmtContext) -> None:
        """Reply with a "tasks" map of per-task statistics keyed by task name."""
        tasks: dict[str, dict[str, int]] = {}
        ctxt.response["tasks"] = tasks
        for idx in itertools.count():
            try:
                info = self.backend.task_info(idx)
            except MgmtError as exc:
                if exc.code == MgmtErr.ENOENT:
                    break
                raise
            if info is None:
                break
            tasks[info.name] = {
                "prio": info.prio,
                "tid": info.taskid,
                "state": info.state,
                "stkuse": info.stkusage,
                "stksiz": info.stksize,
                "cswcnt": info.cswcnt,
                "runtime": info.runtime,
                "last_checkin": info.last_checkin,
                "next_checkin": info.next_checkin,
            }

    def reset(self, ctxt: MgmtContext) -> None:
        """Schedule a system reset after the configured delay."""
        self.backend.reset(self.reset_ms)

    def group(self) -> Group:
        """Return the command group holding this object's handlers."""
        return self._group

    def register(self, registry: Registry) -> None:
        """Register the OS management group with ``registry``."""
        registry.register_group(self._group)