"""Collector configuration: defaults, YAML loading and reloading."""

import dataclasses
import functools
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

_VALID_MODES = frozenset({"text", "json"})
_PASSWORD = "password"

DEFAULT_TEXT_FORMAT = (
    "timestamp identity operation rcode queryip queryport family protocol "
    "length qname qtype latency"
)
DEFAULT_COMMON_QTYPES = (
    "A", "AAAA", "TXT", "CNAME", "PTR", "NAPTR",
    "DNSKEY", "SRV", "SOA", "NS", "MX", "DS",
)


class ConfigError(ValueError):
    """Raised when a configuration document cannot be applied."""


def is_valid_mode(mode: str) -> bool:
    """Return True if ``mode`` is a supported output mode."""
    return mode in _VALID_MODES


def _zero(kind: Any) -> Any:
    if typing.get_origin(kind) is list:
        return []
    return kind()


def _scalar_to_str(value: Any, path: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise ConfigError(f"{path}: expected a string, got {type(value).__name__}")


def _coerce(value: Any, kind: Any, path: str) -> Any:
    if value is None:
        return _zero(kind)
    if typing.get_origin(kind) is list:
        if not isinstance(value, list):
            raise ConfigError(f"{path}: expected a list, got {type(value).__name__}")
        return [_scalar_to_str(item, path) for item in value]
    if kind is bool:
        if not isinstance(value, bool):
            raise ConfigError(f"{path}: expected a boolean, got {value!r}")
        return value
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{path}: expected an integer, got {value!r}")
        return value
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{path}: expected a number, got {value!r}")
        return float(value)
    if kind is str:
        return _scalar_to_str(value, path)
    raise ConfigError(f"{path}: unsupported field type {kind!r}")


@functools.lru_cache(maxsize=None)
def _schema(cls: type) -> dict[str, tuple[str, Any]]:
    """Map YAML keys to (attribute name, type) for a section class."""
    return {
        f.name.replace("_", "-"): (f.name, f.type)
        for f in dataclasses.fields(cls)
    }


class Section:
    """Base for configuration sections whose YAML keys are hyphenated field names."""

    def update(self, data: Any) -> None:
        """Overlay the values found in ``data`` onto this section."""
        self._update(data, "")

    def _update(self, data: Any, path: str) -> None:
        if data is None:
            return
        if not isinstance(data, Mapping):
            where = path or "configuration"
            raise ConfigError(f"{where}: expected a mapping, got {type(data).__name__}")
        schema = _schema(type(self))
        for key, value in data.items():
            if not isinstance(key, str) or key not in schema:
                continue
            name, kind = schema[key]
            key_path = f"{path}.{key}" if path else key
            current = getattr(self, name)
            if isinstance(current, Section):
                current._update(value, key_path)
            else:
                setattr(self, name, _coerce(value, kind, key_path))

    def to_dict(self) -> dict[str, Any]:
        """Return the section as a plain mapping keyed like the YAML file."""
        result: dict[str, Any] = {}
        for key, (name, _) in _schema(type(self)).items():
            value = getattr(self, name)
            if isinstance(value, Section):
                result[key] = value.to_dict()
            elif isinstance(value, list):
                result[key] = list(value)
            else:
                result[key] = value
        return result


# --- trace -----------------------------------------------------------------

@dataclass
class TraceConfig(Section):
    verbose: bool = False
    log_malformed: bool = False
    filename: str = ""
    max_size: int = 10
    max_backups: int = 10


# --- collectors ------------------------------------------------------------

@dataclass
class TailCollectorConfig(Section):
    enable: bool = False
    time_layout: str = ""
    pattern_query: str = ""
    pattern_reply: str = ""
    file_path: str = ""


@dataclass
class DnstapCollectorConfig(Section):
    enable: bool = True
    listen_ip: str = "0.0.0.0"
    listen_port: int = 6000
    sock_path: str = ""
    tls_support: bool = False
    cert_file: str = ""
    key_file: str = ""


@dataclass
class DnsSnifferCollectorConfig(Section):
    enable: bool = False
    port: int = 53
    device: str = ""
    capture_dns_queries: bool = True
    capture_dns_replies: bool = True


@dataclass
class PowerDnsCollectorConfig(Section):
    enable: bool = True
    listen_ip: str = "0.0.0.0"
    listen_port: int = 6001


@dataclass
class CollectorsConfig(Section):
    tail: TailCollectorConfig = field(default_factory=TailCollectorConfig)
    dnstap: DnstapCollectorConfig = field(default_factory=DnstapCollectorConfig)
    dns_sniffer: DnsSnifferCollectorConfig = field(default_factory=DnsSnifferCollectorConfig)
    powerdns: PowerDnsCollectorConfig = field(default_factory=PowerDnsCollectorConfig)


# --- subprocessors ---------------------------------------------------------

@dataclass
class QuietTextConfig(Section):
    dnstap: bool = False
    dns: bool = False


@dataclass
class StatisticsConfig(Section):
    top_max_items: int = 100
    threshold_qname_len: int = 80
    threshold_packet_len: int = 1000
    threshold_slow: float = 0.5
    common_qtypes: list[str] = field(default_factory=lambda: list(DEFAULT_COMMON_QTYPES))
    prometheus_prefix: str = "dnscollector"


@dataclass
class UserPrivacyConfig(Section):
    anonymize_ip: bool = False
    minimaze_qname: bool = False


@dataclass
class CacheConfig(Section):
    enable: bool = True
    query_timeout: int = 5


@dataclass
class FilteringConfig(Section):
    drop_fqdn_file: str = ""
    drop_domain_file: str = ""
    drop_queryip_file: str = ""
    keep_queryip_file: str = ""
    drop_rcodes: list[str] = field(default_factory=list)
    log_queries: bool = True
    log_replies: bool = True


@dataclass
class GeoIpConfig(Section):
    mmdb_country_file: str = ""
    mmdb_city_file: str = ""
    mmdb_asn_file: str = ""


@dataclass
class SubprocessorsConfig(Section):
    quiet_text: QuietTextConfig = field(default_factory=QuietTextConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)
    user_privacy: UserPrivacyConfig = field(default_factory=UserPrivacyConfig)
    qname_lowercase: bool = True
    cache: CacheConfig = field(default_factory=CacheConfig)
    server_id: str = ""
    filtering: FilteringConfig = field(default_factory=FilteringConfig)
    geoip: GeoIpConfig = field(default_factory=GeoIpConfig)
    text_format: str = DEFAULT_TEXT_FORMAT


# --- loggers ---------------------------------------------------------------

@dataclass
class StdoutLoggerConfig(Section):
    enable: bool = False
    mode: str = "text"
    text_format: str = ""


@dataclass
class PrometheusLoggerConfig(Section):
    enable: bool = False
    listen_ip: str = "127.0.0.1"
    listen_port: int = 8081
    basic_auth_login: str = "admin"
    basic_auth_pwd: str = _PASSWORD
    tls_support: bool = False
    cert_file: str = ""
    key_file: str = ""
    prometheus_prefix: str = "dnscollectorv2"


@dataclass
class WebServerLoggerConfig(Section):
    enable: bool = False
    listen_ip: str = "127.0.0.1"
    listen_port: int = 8080
    basic_auth_login: str = "admin"
    basic_auth_pwd: str = _PASSWORD
    tls_support: bool = False
    cert_file: str = ""
    key_file: str = ""


@dataclass
class LogFileLoggerConfig(Section):
    enable: bool = False
    file_path: str = ""
    max_size: int = 100
    max_files: int = 10
    flush_interval: int = 10
    compress: bool = False
    compress_interval: int = 60
    mode: str = "text"
    postrotate_command: str = ""
    postrotate_delete_success: bool = False
    text_format: str = ""


@dataclass
class DnstapLoggerConfig(Section):
    enable: bool = False
    remote_address: str = "127.0.0.1"
    remote_port: int = 6000
    sock_path: str = ""
    retry_interval: int = 5
    tls_support: bool = False
    tls_insecure: bool = False


@dataclass
class TcpClientLoggerConfig(Section):
    enable: bool = False
    remote_address: str = "127.0.0.1"
    remote_port: int = 9999
    sock_path: str = ""
    retry_interval: int = 5
    transport: str = "tcp"
    tls_support: bool = False
    tls_insecure: bool = False
    mode: str = "json"
    text_format: str = ""
    delimiter: str = "\n"


@dataclass
class SyslogLoggerConfig(Section):
    enable: bool = False
    severity: str = "INFO"
    facility: str = "DAEMON"
    transport: str = "local"
    remote_address: str = "127.0.0.1:514"
    text_format: str = ""
    mode: str = "text"
    tls_support: bool = False
    tls_insecure: bool = False


@dataclass
class FluentdLoggerConfig(Section):
    enable: bool = False
    remote_address: str = "127.0.0.1"
    remote_port: int = 24224
    sock_path: str = ""
    retry_interval: int = 5
    transport: str = "tcp"
    tls_support: bool = False
    tls_insecure: bool = False
    tag: str = "dns.collector"


@dataclass
class PcapFileLoggerConfig(Section):
    enable: bool = False
    file_path: str = ""
    max_size: int = 100
    max_files: int = 10
    compress: bool = False
    compress_interval: int = 60
    postrotate_command: str = ""
    postrotate_delete_success: bool = False


@dataclass
class InfluxDbLoggerConfig(Section):
    enable: bool = False
    server_url: str = "http://localhost:8086"
    auth_token: str = ""
    tls_support: bool = False
    tls_insecure: bool = False
    bucket: str = ""
    organization: str = ""


@dataclass
class LokiClientLoggerConfig(Section):
    enable: bool = False
    server_url: str = "http://localhost:3100/loki/api/v1/push"
    job_name: str = "dnscollector"
    mode: str = "text"
    flush_interval: int = 5
    batch_size: int = 1024 * 1024
    retry_interval: int = 10
    text_format: str = ""
    proxy_url: str = ""
    tls_insecure: bool = False
    basic_auth_login: str = ""
    basic_auth_pwd: str = ""
    tenant_id: str = ""


@dataclass
class StatsdLoggerConfig(Section):
    enable: bool = False
    prefix: str = "dnscollector"
    remote_address: str = "127.0.0.1"
    remote_port: int = 8125
    transport: str = "udp"
    flush_interval: int = 10
    tls_support: bool = False
    tls_insecure: bool = False


@dataclass
class LoggersConfig(Section):
    stdout: StdoutLoggerConfig = field(default_factory=StdoutLoggerConfig)
    prometheus: PrometheusLoggerConfig = field(default_factory=PrometheusLoggerConfig)
    webserver: WebServerLoggerConfig = field(default_factory=WebServerLoggerConfig)
    logfile: LogFileLoggerConfig = field(default_factory=LogFileLoggerConfig)
    dnstap: DnstapLoggerConfig = field(default_factory=DnstapLoggerConfig)
    tcpclient: TcpClientLoggerConfig = field(default_factory=TcpClientLoggerConfig)
    syslog: SyslogLoggerConfig = field(default_factory=SyslogLoggerConfig)
    fluentd: FluentdLoggerConfig = field(default_factory=FluentdLoggerConfig)
    pcapfile: PcapFileLoggerConfig = field(default_factory=PcapFileLoggerConfig)
    influxdb: InfluxDbLoggerConfig = field(default_factory=InfluxDbLoggerConfig)
    lokiclient: LokiClientLoggerConfig = field(default_factory=LokiClientLoggerConfig)
    statsd: StatsdLoggerConfig = field(default_factory=StatsdLoggerConfig)


# --- top level -------------------------------------------------------------

@dataclass
class Config(Section):
    """The whole collector configuration, holding defaults until updated."""

    trace: TraceConfig = field(default_factory=TraceConfig)
    collectors: CollectorsConfig = field(default_factory=CollectorsConfig)
    subprocessors: SubprocessorsConfig = field(default_factory=SubprocessorsConfig)
    loggers: LoggersConfig = field(default_factory=LoggersConfig)


def _read_document(handle: typing.TextIO) -> Any:
    try:
        documents = yaml.safe_load_all(handle)
        return next(documents)
    except StopIteration:
        raise ConfigError("configuration file is empty") from None
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}") from exc


def load_config(config_path: str) -> Config:
    """Read ``config_path`` and return a Config with its values over the defaults."""
    config = Config()
    with open(config_path, encoding="utf-8") as handle:
        data = _read_document(handle)
    config.update(data)
    return config


def reload_config(config_path: str, config: Config) -> None:
    """Apply ``config_path`` onto an existing Config; a missing file is ignored."""
    try:
        handle = open(config_path, encoding="utf-8")
    except OSError:
        return
    with handle:
        data = _read_document(handle)
    config.update(data)


def get_fake_config() -> Config:
    """Return a Config holding only default values."""
    return Config()