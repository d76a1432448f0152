# mcumgr

The server side of a device management protocol, written in pure Python.
The package decodes management requests and passes each one to a registered
command handler. It encodes the responses in CBOR with `cbor2`.

## Modules

- `mcumgr.mgmt` holds the core types.
  - `MgmtHeader` is the 8-byte header. `to_bytes()` and `from_bytes()` convert
    it in network byte order.
  - Enums: `Op` for opcodes, `GroupId` for group ids, `MgmtErr` for error
    codes and `EvtOp` for events.
  - `MgmtError` is the exception raised on failure. Its `code` attribute
    holds the error code.
  - `Registry` holds command groups (`Group`, `Handler`) and an optional
    event callback. Its methods are `register_group`, `unregister_group`,
    `find_handler`, `register_evt_cb` and `evt`.
  - `MgmtContext` holds the decoded `request` and the `response` dict that a
    handler fills in.
  - `write_rsp_status` and `err_from_cbor` are helper functions.
- `mcumgr.smp` provides `SmpServer` for the Simple Management Protocol. A
  request is a header followed by a CBOR map. One packet may hold several
  requests, and each one starts at a 4-byte boundary.
  - `process_request_packet(packet)` handles the requests in order. It passes
    each response, as `bytes`, to the `transmit` callable and returns the
    number of requests handled.
  - If a request fails, the server transmits an error response that carries
    `"rc"`. It then raises `MgmtError` and handles no further requests.
  - Helpers: `build_error_response`, `align4` and `response_op`.
- `mcumgr.omp` covers the variant framed in CBOR, where the header travels
  inside the request map under the key `"_h"`.
  - `OmpServer.process_request_packet(request)` accepts CBOR bytes or a map
    that is already decoded. It transmits the response map and also returns
    it.
  - An error raised by a handler is reported in the response as `"rc"`. A
    request that cannot be read or dispatched raises `MgmtError` with
    `EINVAL`.
  - Helpers: `encode_mgmt_hdr`, `send_err_rsp`, `read_hdr` and
    `process_mgmt_hdr`.
- `mcumgr.os_mgmt` provides `OsMgmt` with the echo, task statistics and reset
  commands. It works through an `OsBackend`, and task data comes back as
  `TaskInfo`.
- `mcumgr.shell_mgmt` provides `ShellMgmt`, which runs a shell command given
  as `"argv"`. It works through a `ShellBackend`.
- `mcumgr.stat_mgmt` provides `StatMgmt` to list and show statistics groups.
  It works through a `StatBackend`, and each value comes back as a
  `StatEntry`.
- `mcumgr.util` provides `format_unsigned` and `format_signed`. They format
  64-bit integers as decimal text. They raise `ValueError` if the value is
  out of range or the text does not fit the given buffer size.

Each backend comes with a default that does not support the command:

- `OsBackend` and `StatBackend` raise `MgmtError(ENOTSUP)`.
- `ShellBackend.execute` returns `ENOTSUP` as the command status, and its
  output is empty.

To give the commands real data, subclass the backend and pass the subclass
to the command group.

## Installation

```
pip install .
```

## Example

```python
import cbor2

from mcumgr.mgmt import GroupId, MgmtHeader, Op, Registry
from mcumgr.os_mgmt import OsMgmt
from mcumgr.smp import SmpServer

registry = Registry()
OsMgmt().register(registry)

responses = []
server = SmpServer(registry, transmit=responses.append)

payload = cbor2.dumps({"d": "hello"})
header = MgmtHeader(op=Op.WRITE, group=GroupId.OS, command_id=0, length=len(payload))
server.process_request_packet(header.to_bytes() + payload)

rsp_hdr = MgmtHeader.from_bytes(responses[0])
body = cbor2.loads(responses[0][8:])   # {"r": "hello"}
```

## What the package does not do

- It has no transport. Bluetooth, serial and network links are left to the
  caller, who feeds packets in and sends out what `transmit` receives.
- It has no image, file system, configuration or log command groups.
- It provides no command-line program.

## Running the tests

```
pip install .[test]
pytest
```