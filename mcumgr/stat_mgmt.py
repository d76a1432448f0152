"""Statistics management command group: list stat groups and show their values."""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
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

DEFAULT_MAX_NAME_LEN = 32

_U64_MAX = (1 << 64) - 1


class StatCommand(IntEnum):
    """Command IDs of the statistics management group."""

    SHOW = 0
    LIST = 1


@dataclass(frozen=True)
class StatEntry:
    """A single named value in a statistics group."""

    name: str
    value: int


class StatBackend:
    """Host-specific statistics support.

    The defaults report that the host has no statistics; subclass to provide them.
    """

    def get_group(self, idx: int) -> Optional[str]:
        """Return the name of the stat group at ``idx``, or None past the end."""
        raise MgmtError(MgmtErr.ENOTSUP)

    def foreach_entry(self, group_name: str) -> Iterable[StatEntry]:
        """Yield every entry of the named group; raise ENOENT if it is unknown."""
        raise MgmtError(MgmtErr.ENOTSUP)


class StatMgmt:
    """Handlers of the statistics management group."""

    def __init__(
        self,
        backend: Optional[StatBackend] = None,
        *,
        max_name_len: int = DEFAULT_MAX_NAME_LEN,
    ) -> None:
        self.backend = backend if backend is not None else StatBackend()
        self.max_name_len = max_name_len
        self._group = Group(
            group_id=GroupId.STAT,
            handlers=(Handler(read=self.show), Handler(read=self.list_groups)),
        )

    def _read_name(self, request: object) -> str:
        if not isinstance(request, Mapping):
            raise MgmtError(MgmtErr.EINVAL, "request is not a map")
        name = request.get("name", "")
        if not isinstance(name, str):
            raise MgmtError(MgmtErr.EINVAL, "name is not a string")
        if len(name.encode("utf-8")) >= self.max_name_len:
            raise MgmtError(MgmtErr.EINVAL, "name too long")
        return name.split("\x00", 1)[0]

    def show(self, ctxt: MgmtContext) -> None:
        """Reply with the entries of the requested stat group under "fields"."""
        name = self._read_name(ctxt.request)
        fields: dict[str, int] = {}
        ctxt.response["rc"] = int(MgmtErr.EOK)
        ctxt.response["name"] = name
        ctxt.response["fields"] = fields
        for entry in self.backend.foreach_entry(name):
            value = int(entry.value)
            if not 0 <= value <= _U64_MAX:
                raise MgmtError(MgmtErr.EUNKNOWN, "stat value out of range")
            fields[entry.name] = value

    def list_groups(self, ctxt: MgmtContext) -> None:
        """Reply with the names of all stat groups under "stat_list"."""
        names: list[str] = []
        ctxt.response["rc"] = int(MgmtErr.EOK)
        ctxt.response["stat_list"] = names
        for idx in itertools.count():
            try:
                name = self.backend.get_group(idx)
            except MgmtError as exc:
                if exc.code == MgmtErr.ENOENT:
                    break
                raise
            if name is None:
                break
            names.append(name)

    def group(self) -> Group:
        """Return the command group holding this object's handlers."""
        return self._group

    def register(self, registry: Registry) -> None:
        """Register the statistics management group with ``registry``."""
        registry.register_group(self._group)