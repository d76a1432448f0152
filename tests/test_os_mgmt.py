import cbor2
import pytest

from mcumgr.mgmt import (
    HDR_SIZE,
    GroupId,
    MgmtContext,
    MgmtErr,
    MgmtError,
    MgmtHeader,
    Op,
    Registry,
)
from mcumgr.os_mgmt import OsBackend, OsCommand, OsMgmt, TaskInfo
from mcumgr.smp import SmpServer


class FakeBackend(OsBackend):
    def __init__(self, tasks, fail_at=None):
        self.tasks = tasks
        self.fail_at = fail_at
        self.resets = []

    def task_info(self, idx):
        if idx == self.fail_at:
            raise MgmtError(MgmtErr.EBADSTATE)
        if idx >= len(self.tasks):
            return None
        return self.tasks[idx]

    def reset(self, delay_ms):
        self.resets.append(delay_ms)


class EnoentBackend(OsBackend):
    def task_info(self, idx):
        if idx == 0:
            return TaskInfo(name="idle", prio=255)
        raise MgmtError(MgmtErr.ENOENT)


def test_echo_returns_text():
    ctxt = MgmtContext(request={"d": "hello"})
    OsMgmt().echo(ctxt)
    assert ctxt.response == {"r": "hello"}


def test_echo_without_d_returns_empty():
    ctxt = MgmtContext(request={"other": 1})
    OsMgmt().echo(ctxt)
    assert ctxt.response == {"r": ""}


def test_echo_accepts_text_just_under_buffer():
    text = "a" * 127
    ctxt = MgmtContext(request={"d": text})
    OsMgmt().echo(ctxt)
    assert ctxt.response["r"] == text


@pytest.mark.parametrize("request_obj", [{"d": "a" * 128}, {"d": 5}, ["d"], None])
def test_echo_rejects_bad_requests(request_obj):
    with pytest.raises(MgmtError) as info:
        OsMgmt().echo(MgmtContext(request=request_obj))
    assert info.value.code == MgmtErr.EINVAL


def test_taskstat_lists_tasks_in_order():
    tasks = [
        TaskInfo(name="main", prio=127, taskid=1, state=2, stkusage=40, stksize=256,
                 cswcnt=10, runtime=20, last_checkin=30, next_checkin=40),
        TaskInfo(name="idle", prio=255, taskid=0),
    ]
    ctxt = MgmtContext(request={})
    OsMgmt(FakeBackend(tasks)).taskstat_read(ctxt)
    assert list(ctxt.response["tasks"]) == ["main", "idle"]
    assert ctxt.response["tasks"]["main"] == {
        "prio": 127,
        "tid": 1,
        "state": 2,
        "stkuse": 40,
        "stksiz": 256,
        "cswcnt": 10,
        "runtime": 20,
        "last_checkin": 30,
        "next_checkin": 40,
    }
    assert ctxt.response["tasks"]["idle"]["prio"] == 255


def test_taskstat_stops_on_enoent():
    ctxt = MgmtContext(request={})
    OsMgmt(EnoentBackend()).taskstat_read(ctxt)
    assert list(ctxt.response["tasks"]) == ["idle"]


def test_taskstat_propagates_backend_error():
    backend = FakeBackend([TaskInfo(name="a"), TaskInfo(name="b")], fail_at=1)
    ctxt = MgmtContext(request={})
    with pytest.raises(MgmtError) as info:
        OsMgmt(backend).taskstat_read(ctxt)
    assert info.value.code == MgmtErr.EBADSTATE
    assert list(ctxt.response["tasks"]) == ["a"]


def test_default_backend_is_unsupported():
    mgmt = OsMgmt()
    with pytest.raises(MgmtError) as info:
        mgmt.taskstat_read(MgmtContext(request={}))
    assert info.value.code == MgmtErr.ENOTSUP
    with pytest.raises(MgmtError) as info:
        mgmt.reset(MgmtContext(request={}))
    assert info.value.code == MgmtErr.ENOTSUP


def test_reset_passes_configured_delay():
    backend = FakeBackend([])
    OsMgmt(backend, reset_ms=500).reset(MgmtContext(request={}))
    assert backend.resets == [500]


def test_group_layout():
    group = OsMgmt().group()
    assert group.group_id == GroupId.OS
    assert len(group.handlers) == OsCommand.RESET + 1
    reset = group.handlers[OsCommand.RESET]
    assert reset.read is None and reset.write is not None
    taskstat = group.handlers[OsCommand.TASKSTAT]
    assert taskstat.write is None and taskstat.read is not None


def test_disabled_commands_are_not_found():
    registry = Registry()
    OsMgmt(echo=False, taskstat=False).register(registry)
    assert registry.find_handler(GroupId.OS, OsCommand.ECHO) is None
    assert registry.find_handler(GroupId.OS, OsCommand.TASKSTAT) is None
    assert registry.find_handler(GroupId.OS, OsCommand.RESET).write is not None


def test_echo_over_smp():
    registry = Registry()
    OsMgmt().register(registry)
    sent = []
    server = SmpServer(registry, sent.append)
    payload = cbor2.dumps({"d": "hi"})
    hdr = MgmtHeader(op=Op.WRITE, length=len(payload), group=GroupId.OS,
                     seq=7, command_id=OsCommand.ECHO)
    assert server.process_request_packet(hdr.to_bytes() + payload) == 1
    rsp_hdr = MgmtHeader.from_bytes(sent[0])
    assert rsp_hdr.op == Op.WRITE_RSP
    assert rsp_hdr.seq == 7
    assert cbor2.loads(sent[0][HDR_SIZE:]) == {"r": "hi"}


def test_reset_read_over_smp_is_unsupported():
    registry = Registry()
    OsMgmt(FakeBackend([])).register(registry)
    sent = []
    server = SmpServer(registry, sent.append)
    payload = cbor2.dumps({})
    hdr = MgmtHeader(op=Op.READ, length=len(payload), group=GroupId.OS,
                     command_id=OsCommand.RESET)
    with pytest.raises(MgmtError) as info:
        server.process_request_packet(hdr.to_bytes() + payload)
    assert info.value.code == MgmtErr.ENOTSUP
    assert cbor2.loads(sent[0][HDR_SIZE:]) == {"rc": int(MgmtErr.ENOTSUP)}