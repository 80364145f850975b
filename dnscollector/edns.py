"""Decoding of the EDNS(0) OPT pseudo-record and its options."""

from __future__ import annotations

import enum
import ipaddress
import struct
from collections.abc import Callable

from dnscollector.dns import DnsAnswerTooShortError, DnsDecodeError, parse_labels
from dnscollector.message import DnsExtended, DnsOption

_OPT_TYPE = 41
_RR_FIXED = struct.Struct(">HHIH")
_OPTION_HEAD = struct.Struct(">HH")


class OptionCode(enum.IntEnum):
    """EDNS option codes with a known name."""

    NSID = 3
    CSUBNET = 8
    EXPIRE = 9
    COOKIE = 10
    KEEPALIVE = 11
    PADDING = 12
    ERRORS = 15


OPT_CODES: dict[int, str] = {member.value: member.name for member in OptionCode}

# Extended DNS error info codes (RFC 8914), in code order starting at zero.
_ERROR_DESCRIPTIONS = (
    "Other",
    "Unsupported DNSKEY Algorithm",
    "Unsupported DS Digest Type",
    "Stale Answer",
    "Forged Answer",
    "DNSSEC Indeterminate",
    "DNSSEC Bogus",
    "Signature Expired",
    "Signature Not Yet Valid",
    "DNSKEY Missing",
    "RRSIGs Missing",
    "No Zone Key Bit Set",
    "NSEC Missing",
    "Cached Error",
    "Not Ready",
    "Blocked",
    "Censored",
    "Filtered",
    "Prohibited",
    "Stale NXDOMAIN Answer",
    "Not Authoritative",
    "Not Supported",
    "No Reachable Authority",
    "Network Error",
    "Invalid Data",
)
ERROR_CODES: dict[int, str] = dict(enumerate(_ERROR_DESCRIPTIONS))


class EdnsBadRootDomainError(DnsDecodeError):
    default_message = "edns, name MUST be 0 (root domain)"


class EdnsDataTooShortError(DnsDecodeError):
    default_message = "edns, not enough data to decode rdata answer"


class EdnsOptionTooShortError(DnsDecodeError):
    default_message = "edns, not enough data to decode option answer"


class EdnsCsubnetBadFamilyError(DnsDecodeError):
    default_message = "edns, csubnet option bad family"


class EdnsTooManyOptsError(DnsDecodeError):
    default_message = "edns, packet contained too many OPT RRs"


def opt_code_to_string(code: int) -> str:
    """Return the name of an EDNS option code, or UNKNOWN."""
    try:
        return OptionCode(code).name
    except ValueError:
        return "UNKNOWN"


def _iter_options(payload: bytes, start: int, end: int):
    """Yield decoded options found in ``payload[start:end]``."""
    pos = start
    while pos < end:
        if end - pos < _OPTION_HEAD.size:
            raise EdnsOptionTooShortError()
        code, length = _OPTION_HEAD.unpack_from(payload, pos)
        body_start = pos + _OPTION_HEAD.size
        body_end = body_start + length
        if body_end > end:
            raise EdnsDataTooShortError()
        name = opt_code_to_string(code)
        yield DnsOption(code=code, name=name,
                        data=parse_option(name, bytes(payload[body_start:body_end])))
        pos = body_end


def decode_edns(arcount: int, start_offset: int, payload: bytes) -> tuple[DnsExtended, int]:
    """Decode the OPT record among ``arcount`` additional records at ``start_offset``.

    Returns the decoded EDNS data and the start offset.
    """
    edns = DnsExtended()
    seen_opt = False
    cursor = start_offset
    for _ in range(arcount):
        owner, fixed_at = parse_labels(cursor, payload)
        if len(payload) - fixed_at < _RR_FIXED.size:
            raise DnsAnswerTooShortError()
        rtype, udp_size, ttl, rdlength = _RR_FIXED.unpack_from(payload, fixed_at)
        if rtype != _OPT_TYPE:
            continue
        # only one OPT record is allowed in a message (RFC 6891)
        if seen_opt:
            raise EdnsTooManyOptsError()
        if owner:
            raise EdnsBadRootDomainError()

        ext_rcode, version, flags = ttl >> 24, (ttl >> 16) & 0xFF, ttl & 0xFFFF
        edns.udp_size = udp_size
        edns.extended_rcode = ext_rcode << 4
        edns.version = version
        edns.do = flags >> 15
        edns.z = flags & 0x7FFF

        body = fixed_at + _RR_FIXED.size
        if len(payload) - body < rdlength:
            raise EdnsDataTooShortError()
        edns.options = list(_iter_options(payload, body, body + rdlength))
        seen_opt = True
    return edns, cursor


def parse_errors(data: bytes) -> str:
    """Render an extended DNS error option (RFC 8914)."""
    if len(data) < 2:
        raise EdnsOptionTooShortError()
    code = int.from_bytes(data[:2], "big")
    description = ERROR_CODES.get(code, "-")
    extra = bytes(data[2:]).decode("utf-8", errors="replace") or "-"
    return f"{code} {description} {extra}"


def _format_address(raw: bytes, size: int) -> str:
    packed = bytes(raw[:size]).ljust(size, b"\x00")
    if size == 4:
        return str(ipaddress.IPv4Address(packed))
    addr = ipaddress.IPv6Address(packed)
    mapped = addr.ipv4_mapped
    return str(mapped if mapped is not None else addr)


def parse_csubnet(data: bytes) -> str:
    """Render a client subnet option (RFC 7871) as address/prefix."""
    if len(data) < 4:
        raise EdnsOptionTooShortError()
    family = int.from_bytes(data[:2], "big")
    prefix = data[2]
    if family == 1:
        return f"{_format_address(data[4:], 4)}/{prefix}"
    if family == 2:
        return f"[{_format_address(data[4:], 16)}]/{prefix}"
    raise EdnsCsubnetBadFamilyError()


_OPTION_PARSERS: dict[str, Callable[[bytes], str]] = {
    OptionCode.ERRORS.name: parse_errors,
    OptionCode.CSUBNET.name: parse_csubnet,
}


def parse_option(opt_name: str, opt_data: bytes) -> str:
    """Render an option's data as text; unsupported options give "-"."""
    parser = _OPTION_PARSERS.get(opt_name)
    return parser(opt_data) if parser else "-"