"""The DNS message record passed from collectors to loggers, and its text rendering."""

from __future__ import annotations

import abc
import queue
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

DNS_QUERY = "QUERY"
DNS_REPLY = "REPLY"


class UnsupportedDirectiveError(ValueError):
    """Raised when a text format holds a directive that cannot be rendered."""


@dataclass
class DnsAnswer:
    name: str = ""
    rdatatype: str = ""
    rclass: int = 0
    ttl: int = 0
    rdata: str = ""


@dataclass
class DnsFlags:
    qr: bool = False
    tc: bool = False
    aa: bool = False
    ra: bool = False
    ad: bool = False


@dataclass
class DnsGeo:
    city: str = "-"
    continent: str = "-"
    country_iso_code: str = "-"


@dataclass
class DnsNetInfo:
    family: str = "-"
    protocol: str = "-"
    query_ip: str = "-"
    query_port: str = "-"
    response_ip: str = "-"
    response_port: str = "-"
    as_number: str = "-"
    as_owner: str = "-"


@dataclass
class DnsRRs:
    answers: list[DnsAnswer] = field(default_factory=list)
    nameservers: list[DnsAnswer] = field(default_factory=list)
    records: list[DnsAnswer] = field(default_factory=list)


@dataclass
class Dns:
    type: str = "-"
    payload: bytes = b""
    length: int = 0
    id: int = 0
    opcode: int = 0
    rcode: str = "-"
    qname: str = "-"
    qname_public_suffix: str = "-"
    qname_effective_tld_plus_one: str = "-"
    qtype: str = "-"
    flags: DnsFlags = field(default_factory=DnsFlags)
    rrs: DnsRRs = field(default_factory=DnsRRs)
    malformed_packet: int = 0


@dataclass
class DnsOption:
    code: int = 0
    name: str = ""
    data: str = ""


@dataclass
class DnsExtended:
    udp_size: int = 0
    extended_rcode: int = 0
    version: int = 0
    do: int = 0
    z: int = 0
    options: list[DnsOption] = field(default_factory=list)


@dataclass
class DnsTap:
    operation: str = "-"
    identity: str = "-"
    timestamp_rfc3339: str = "-"
    timestamp: float = 0.0
    time_sec: int = 0
    time_nsec: int = 0
    latency: float = 0.0
    latency_sec: str = "-"


def _flag(value: bool, label: str) -> str:
    return label if value else "-"


def _localtime(sec: int, nsec: int) -> str:
    moment = datetime.fromtimestamp(sec)
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    fraction = f"{nsec:09d}".rstrip("0")
    return f"{text}.{fraction}" if fraction else text


def _first_answer(dm: DnsMessage, pick: Callable[[DnsAnswer], str]) -> str:
    answers = dm.dns.rrs.answers
    return pick(answers[0]) if answers else "-"


def _csubnet(dm: DnsMessage) -> str:
    options = dm.edns.options
    if not options:
        return "-"
    return next((opt.data for opt in options if opt.name == "CSUBNET"), "")


_DIRECTIVES: dict[str, Callable[["DnsMessage"], str]] = {
    "ttl": lambda dm: _first_answer(dm, lambda a: str(a.ttl)),
    "answer": lambda dm: _first_answer(dm, lambda a: a.rdata),
    "edns-csubnet": _csubnet,
    "answercount": lambda dm: str(len(dm.dns.rrs.answers)),
    "id": lambda dm: str(dm.dns.id),
    "timestamp": lambda dm: dm.dnstap.timestamp_rfc3339,
    "timestamp-rfc3339ns": lambda dm: dm.dnstap.timestamp_rfc3339,
    "timestamp-unixms": lambda dm: f"{dm.dnstap.timestamp:.3f}",
    "timestamp-unixus": lambda dm: f"{dm.dnstap.timestamp:.6f}",
    "timestamp-unixns": lambda dm: f"{dm.dnstap.timestamp:.9f}",
    "localtime": lambda dm: _localtime(dm.dnstap.time_sec, dm.dnstap.time_nsec),
    "identity": lambda dm: dm.dnstap.identity,
    "operation": lambda dm: dm.dnstap.operation,
    "rcode": lambda dm: dm.dns.rcode,
    "queryip": lambda dm: dm.network_info.query_ip,
    "queryport": lambda dm: dm.network_info.query_port,
    "responseip": lambda dm: dm.network_info.response_ip,
    "responseport": lambda dm: dm.network_info.response_port,
    "family": lambda dm: dm.network_info.family,
    "protocol": lambda dm: dm.network_info.protocol,
    "length": lambda dm: f"{dm.dns.length}b",
    "qname": lambda dm: dm.dns.qname,
    "qnamepublicsuffix": lambda dm: dm.dns.qname_public_suffix,
    "qnameeffectivetldplusone": lambda dm: dm.dns.qname_effective_tld_plus_one,
    "qtype": lambda dm: dm.dns.qtype,
    "latency": lambda dm: dm.dnstap.latency_sec,
    "continent": lambda dm: dm.geo.continent,
    "country": lambda dm: dm.geo.country_iso_code,
    "city": lambda dm: dm.geo.city,
    "as-number": lambda dm: dm.network_info.as_number,
    "as-owner": lambda dm: dm.network_info.as_owner,
    "malformed": lambda dm: str(dm.dns.malformed_packet),
    "qr": lambda dm: dm.dns.type,
    "opcode": lambda dm: str(dm.dns.opcode),
    "tc": lambda dm: _flag(dm.dns.flags.tc, "TC"),
    "aa": lambda dm: _flag(dm.dns.flags.aa, "AA"),
    "ra": lambda dm: _flag(dm.dns.flags.ra, "RA"),
    "ad": lambda dm: _flag(dm.dns.flags.ad, "AD"),
}


@dataclass
class DnsMessage:
    """One observed DNS query or reply with its transport and enrichment data."""

    network_info: DnsNetInfo = field(default_factory=DnsNetInfo)
    dns: Dns = field(default_factory=Dns)
    edns: DnsExtended = field(default_factory=DnsExtended)
    dnstap: DnsTap = field(default_factory=DnsTap)
    geo: DnsGeo = field(default_factory=DnsGeo)

    def to_bytes(self, format: Iterable[str], delimiter: str) -> bytes:
        """Render the directives in ``format`` space-separated, followed by ``delimiter``."""
        words = []
        for directive in format:
            render = _DIRECTIVES.get(directive)
            if render is None:
                raise UnsupportedDirectiveError(
                    f"unsupport directive for text format: {directive}"
                )
            words.append(render(self))
        return (" ".join(words) + delimiter).encode("utf-8")

    def to_text(self, format: Iterable[str]) -> str:
        """Render the directives in ``format`` as one newline-terminated line."""
        return self.to_bytes(format, "\n").decode("utf-8")


class Worker(abc.ABC):
    """A collector or logger that runs in the background and can be reconfigured."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop the worker and wait until it has finished."""

    @abc.abstractmethod
    def run(self) -> None:
        """Run the worker until it is stopped."""

    @abc.abstractmethod
    def channel(self) -> queue.Queue[DnsMessage] | None:
        """Return the queue that receives messages, or None if it takes none."""

    @abc.abstractmethod
    def read_config(self) -> None:
        """Apply the current configuration to the worker."""


def get_fake_dns_message() -> DnsMessage:
    """Return a sample query message with fixed values."""
    dm = DnsMessage()
    dm.dnstap.identity = "collector"
    dm.dnstap.operation = "CLIENT_QUERY"
    dm.dns.type = DNS_QUERY
    dm.dns.qname = "dns.collector"
    dm.network_info.query_ip = "1.2.3.4"
    dm.network_info.query_port = "1234"
    dm.network_info.response_ip = "4.3.2.1"
    dm.network_info.response_port = "4321"
    dm.dns.rcode = "NOERROR"
    dm.dns.qtype = "A"
    return dm