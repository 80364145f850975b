"""Decoding of DNS wire-format headers, questions and resource records."""

from __future__ import annotations

import ipaddress
import struct
from collections.abc import Callable
from dataclasses import dataclass

from dnscollector.message import DnsAnswer

DNS_LEN = 12
_OPT_TYPE = 41
_MAX_NAME_LENGTH = 254

RDATATYPES: dict[int, str] = {
    0: "NONE", 1: "A", 2: "NS", 3: "MD", 4: "MF", 5: "CNAME", 6: "SOA",
    7: "MB", 8: "MG", 9: "MR", 10: "NULL", 11: "WKS", 12: "PTR", 13: "HINFO",
    14: "MINFO", 15: "MX", 16: "TXT", 17: "RP", 18: "AFSDB", 19: "X25",
    20: "ISDN", 21: "RT", 22: "NSAP", 23: "NSAP_PTR", 24: "SIG", 25: "KEY",
    26: "PX", 27: "GPOS", 28: "AAAA", 29: "LOC", 30: "NXT", 33: "SRV",
    35: "NAPTR", 36: "KX", 37: "CERT", 38: "A6", 39: "DNAME", 41: "OPT",
    42: "APL", 43: "DS", 44: "SSHFP", 45: "IPSECKEY", 46: "RRSIG", 47: "NSEC",
    48: "DNSKEY", 49: "DHCID", 50: "NSEC3", 51: "NSEC3PARAM", 52: "TSLA",
    53: "SMIMEA", 55: "HIP", 56: "NINFO", 59: "CDS", 60: "CDNSKEY",
    61: "OPENPGPKEY", 62: "CSYNC", 64: "SVCB", 65: "HTTPS", 99: "SPF",
    103: "UNSPEC", 108: "EUI48", 109: "EUI64", 249: "TKEY", 250: "TSIG",
    251: "IXFR", 252: "AXFR", 253: "MAILB", 254: "MAILA", 255: "ANY",
    256: "URI", 257: "CAA", 258: "AVC", 259: "AMTRELAY", 32768: "TA",
    32769: "DLV",
}

RCODES: dict[int, str] = {
    0: "NOERROR", 1: "FORMERR", 2: "SERVFAIL", 3: "NXDOMAIN", 4: "NOIMP",
    5: "REFUSED", 6: "YXDOMAIN", 7: "YXRRSET", 8: "NXRRSET", 9: "NOTAUTH",
    10: "NOTZONE", 11: "DSOTYPENI", 16: "BADSIG", 17: "BADKEY",
    18: "BADTIME", 19: "BADMODE", 20: "BADNAME", 21: "BADALG",
    22: "BADTRUNC", 23: "BADCOOKIE",
}


class DnsDecodeError(ValueError):
    """Base class for malformed DNS packet errors."""

    default_message = "malformed pkt"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class DnsHeaderTooShortError(DnsDecodeError):
    default_message = "malformed pkt, dns payload too short to decode header"


class DnsLabelTooLongError(DnsDecodeError):
    default_message = "malformed pkt, label too long"


class DnsLabelInvalidDataError(DnsDecodeError):
    default_message = "malformed pkt, invalid label length byte"


class DnsLabelInvalidOffsetError(DnsDecodeError):
    default_message = "malformed pkt, invalid offset to decode label"


class DnsLabelInvalidPointerError(DnsDecodeError):
    default_message = "malformed pkt, label pointer not pointing to prior data"


class DnsLabelTooShortError(DnsDecodeError):
    default_message = "malformed pkt, dns payload too short to get label"


class QuestionQtypeTooShortError(DnsDecodeError):
    default_message = "malformed pkt, not enough data to decode qtype"


class DnsAnswerTooShortError(DnsDecodeError):
    default_message = "malformed pkt, not enough data to decode answer"


class DnsAnswerRdataTooShortError(DnsDecodeError):
    default_message = "malformed pkt, not enough data to decode rdata answer"


def rdatatype_to_string(rrtype: int) -> str:
    """Return the mnemonic of a record type, or UNKNOWN."""
    return RDATATYPES.get(rrtype, "UNKNOWN")


def rcode_to_string(rcode: int) -> str:
    """Return the mnemonic of a response code, or UNKNOWN."""
    return RCODES.get(rcode, "UNKNOWN")


@dataclass
class DnsHeader:
    id: int = 0
    qr: int = 0
    opcode: int = 0
    aa: int = 0
    tc: int = 0
    rd: int = 0
    ra: int = 0
    z: int = 0
    ad: int = 0
    cd: int = 0
    rcode: int = 0
    qdcount: int = 0
    ancount: int = 0
    nscount: int = 0
    arcount: int = 0


def decode_dns(payload: bytes) -> DnsHeader:
    """Decode the fixed 12-byte DNS header."""
    if len(payload) < DNS_LEN:
        raise DnsHeaderTooShortError()
    ident, flags, qd, an, ns, ar = struct.unpack_from(">6H", payload)
    return DnsHeader(
        id=ident,
        qr=flags >> 15,
        opcode=(flags >> 11) & 0xF,
        aa=(flags >> 10) & 1,
        tc=(flags >> 9) & 1,
        rd=(flags >> 8) & 1,
        ra=(flags >> 7) & 1,
        z=(flags >> 6) & 1,
        ad=(flags >> 5) & 1,
        cd=(flags >> 4) & 1,
        rcode=flags & 0xF,
        qdcount=qd,
        ancount=an,
        nscount=ns,
        arcount=ar,
    )


def decode_question(qdcount: int, payload: bytes) -> tuple[str, int, int]:
    """Decode ``qdcount`` questions; return the last (qname, qtype) and the next offset."""
    offset = DNS_LEN
    qname = ""
    qtype = 0
    for _ in range(qdcount):
        qname, offset = parse_labels(offset, payload)
        if len(payload) - offset < 4:
            raise QuestionQtypeTooShortError()
        (qtype,) = struct.unpack_from(">H", payload, offset)
        offset += 4
    return qname, qtype, offset


def decode_answer(
    ancount: int, start_offset: int, payload: bytes
) -> tuple[list[DnsAnswer], int]:
    """Decode ``ancount`` resource records starting at ``start_offset``.

    OPT records are skipped. Returns the answers and the offset after them.
    """
    offset = start_offset
    answers: list[DnsAnswer] = []
    for _ in range(ancount):
        name, offset_next = parse_labels(offset, payload)
        if len(payload) - offset_next < 10:
            raise DnsAnswerTooShortError()
        rtype, rclass, ttl, rdlength = struct.unpack_from(">HHIH", payload, offset_next)
        rdata_offset = offset_next + 10
        rdata_end = rdata_offset + rdlength
        if len(payload) - rdata_offset < rdlength:
            raise DnsAnswerRdataTooShortError()
        rdata = payload[rdata_offset:rdata_end]
        if rtype == _OPT_TYPE:
            offset = rdata_end
            continue
        rdatatype = rdatatype_to_string(rtype)
        parsed = parse_rdata(rdatatype, rdata, payload[:rdata_end], rdata_offset)
        answers.append(
            DnsAnswer(name=name, rdatatype=rdatatype, rclass=rclass, ttl=ttl, rdata=parsed)
        )
        offset = rdata_end
    return answers, offset


def parse_labels(offset: int, payload: bytes) -> tuple[str, int]:
    """Decode a possibly compressed domain name; return it and the offset after it."""
    if offset < 0:
        raise DnsLabelInvalidOffsetError()

    labels: list[str] = []
    start_offset = offset
    max_offset = len(payload)
    end_offset = -1
    total_length = 0

    while True:
        if offset >= len(payload):
            raise DnsLabelTooShortError()
        if offset >= max_offset:
            raise DnsLabelInvalidPointerError()

        length = payload[offset]
        if length == 0:
            if end_offset == -1:
                end_offset = offset + 1
            break
        if length & 0xC0 == 0xC0:
            if offset + 2 > len(payload):
                raise DnsLabelTooShortError()
            if offset + 2 > max_offset:
                raise DnsLabelInvalidPointerError()
            (raw,) = struct.unpack_from(">H", payload, offset)
            ptr = raw & 0x3FFF
            # pointers must always point to prior data
            if ptr >= start_offset:
                raise DnsLabelInvalidPointerError()
            if end_offset == -1:
                end_offset = offset + 2
            max_offset = start_offset
            start_offset = ptr
            offset = ptr
        elif length & 0xC0 == 0:
            if offset + length + 1 > len(payload):
                raise DnsLabelTooShortError()
            if offset + length + 1 > max_offset:
                raise DnsLabelInvalidPointerError()
            total_length += length + 1
            if total_length > _MAX_NAME_LENGTH:
                raise DnsLabelTooLongError()
            label = payload[offset + 1 : offset + length + 1]
            labels.append(label.decode("utf-8", errors="replace"))
            offset += length + 1
        else:
            raise DnsLabelInvalidDataError()

    return ".".join(labels), end_offset


def _format_ip(packed: bytes) -> str:
    if len(packed) == 4:
        return str(ipaddress.IPv4Address(packed))
    addr = ipaddress.IPv6Address(packed)
    if addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def parse_soa(rdata_offset: int, payload: bytes) -> str:
    primary_ns, offset = parse_labels(rdata_offset, payload)
    resp_mailbox, offset = parse_labels(offset, payload)
    if offset + 20 > len(payload):
        raise DnsAnswerRdataTooShortError()
    serial, refresh, retry, expire, minimum = struct.unpack_from(">IiiiI", payload, offset)
    return f"{primary_ns} {resp_mailbox} {serial} {refresh} {retry} {expire} {minimum}"


def parse_a(rdata: bytes) -> str:
    if len(rdata) < 4:
        raise DnsAnswerRdataTooShortError()
    return _format_ip(bytes(rdata[:4]))


def parse_aaaa(rdata: bytes) -> str:
    if len(rdata) < 16:
        raise DnsAnswerRdataTooShortError()
    return _format_ip(bytes(rdata[:16]))


def parse_cname(rdata_offset: int, payload: bytes) -> str:
    return parse_labels(rdata_offset, payload)[0]


def parse_mx(rdata_offset: int, payload: bytes) -> str:
    # preference plus at least one byte for the exchange name
    if len(payload) < rdata_offset + 3:
        raise DnsAnswerRdataTooShortError()
    (pref,) = struct.unpack_from(">H", payload, rdata_offset)
    host, _ = parse_labels(rdata_offset + 2, payload)
    return f"{pref} {host}"


def parse_srv(rdata_offset: int, payload: bytes) -> str:
    if len(payload) < rdata_offset + 7:
        raise DnsAnswerRdataTooShortError()
    priority, weight, port = struct.unpack_from(">HHH", payload, rdata_offset)
    target, _ = parse_labels(rdata_offset + 6, payload)
    return f"{priority} {weight} {port} {target}"


def parse_ns(rdata_offset: int, payload: bytes) -> str:
    return parse_labels(rdata_offset, payload)[0]


def parse_txt(rdata: bytes) -> str:
    if len(rdata) < 1:
        raise DnsAnswerRdataTooShortError()
    length = rdata[0]
    if len(rdata) - 1 < length:
        raise DnsAnswerRdataTooShortError()
    return bytes(rdata[1 : length + 1]).decode("utf-8", errors="replace")


def parse_ptr(rdata_offset: int, payload: bytes) -> str:
    return parse_labels(rdata_offset, payload)[0]


_BY_RDATA: dict[str, Callable[[bytes], str]] = {
    "A": parse_a,
    "AAAA": parse_aaaa,
    "TXT": parse_txt,
}

_BY_OFFSET: dict[str, Callable[[int, bytes], str]] = {
    "CNAME": parse_cname,
    "MX": parse_mx,
    "SRV": parse_srv,
    "NS": parse_ns,
    "PTR": parse_ptr,
    "SOA": parse_soa,
}


def parse_rdata(rdatatype: str, rdata: bytes, payload: bytes, rdata_offset: int) -> str:
    """Render the rdata of a record as text; unsupported types give "-"."""
    if rdatatype in _BY_RDATA:
        return _BY_RDATA[rdatatype](rdata)
    if rdatatype in _BY_OFFSET:
        return _BY_OFFSET[rdatatype](rdata_offset, payload)
    return "-"