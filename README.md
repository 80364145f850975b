# dnscollector

Building blocks for collecting and logging DNS traffic: a configuration model
read from YAML, a DNS message record that renders as a text line, and strict
decoders for DNS wire format and EDNS(0).

## Modules

- `dnscollector.config`: the full configuration tree as dataclasses
  (`Config` with its `trace`, `collectors`, `subprocessors` and `loggers`
  sections), each holding its default values. YAML keys are the field names
  with hyphens, for example `listen-port` or `text-format`.
  - `load_config(path)` reads a YAML file and lays its values over the
    defaults; keys it does not know are ignored, values of the wrong type
    raise `ConfigError`.
  - `reload_config(path, config)` applies a file onto an existing `Config`;
    a file that cannot be opened is ignored.
  - `get_fake_config()` returns a `Config` holding only defaults.
  - `is_valid_mode(mode)` is true for `"text"` and `"json"`.
  - Every section has `update(data)` and `to_dict()`.
- `dnscollector.message`: the `DnsMessage` dataclass (`network_info`, `dns`,
  `edns`, `dnstap`, `geo`) and its parts. `to_bytes(format, delimiter)` and
  `to_text(format)` render it from a list of directives such as `timestamp`,
  `identity`, `qname`, `qtype`, `rcode`, `length`, `ttl`, `answer` or
  `edns-csubnet`; an unknown directive raises `UnsupportedDirectiveError`.
  The module also defines the abstract `Worker` interface (`run`, `stop`,
  `channel`, `read_config`) and `get_fake_dns_message()`.
- `dnscollector.dns`: decoding of the header (`decode_dns`), questions
  (`decode_question`), resource records (`decode_answer`, which skips OPT
  records) and compressed names (`parse_labels`), with rdata rendering for
  A, AAAA, CNAME, MX, SRV, NS, TXT, PTR and SOA; other types render as `-`.
  Compression pointers must point backwards and names are limited to 254
  bytes. `rdatatype_to_string` and `rcode_to_string` give mnemonics.
- `dnscollector.edns`: `decode_edns` for the OPT pseudo-record (UDP size,
  extended rcode, version, DO bit, options), with client-subnet
  (`parse_csubnet`) and extended-error (`parse_errors`) options rendered as
  text. More than one OPT record, or one with a non-root owner name, is
  rejected.

Every decoding failure raises a subclass of `dnscollector.dns.DnsDecodeError`
(itself a `ValueError`), such as `DnsLabelTooShortError`,
`DnsAnswerRdataTooShortError` or `EdnsOptionTooShortError`.

## Installation

```
pip install .
```

## Usage

Load a configuration:

```python
from dnscollector.config import load_config

config = load_config("config.yml")
print(config.collectors.dnstap.listen_port)  # 6000 unless the file sets it
```

Decode a packet:

```python
from dnscollector.dns import decode_dns, decode_question, decode_answer
from dnscollector.edns import decode_edns

header = decode_dns(payload)
qname, qtype, offset = decode_question(header.qdcount, payload)
answers, offset = decode_answer(header.ancount, offset, payload)
nameservers, offset = decode_answer(header.nscount, offset, payload)
edns, _ = decode_edns(header.arcount, offset, payload)
```

Render a message as text:

```python
from dnscollector.message import get_fake_dns_message

dm = get_fake_dns_message()
print(dm.to_text(["qname", "qtype", "rcode"]), end="")  # dns.collector A NOERROR
```

## What this package does not do

It has no command, and it does not capture or receive DNS traffic: there are
no listeners, packet sniffers or log-file followers. It does not write
messages anywhere either; the output sections of the configuration are
settings only, and `Worker` is an interface with no implementations here.