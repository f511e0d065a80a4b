"""
Typed properties bound from the loaded configuration.

Each section of ``config.yaml`` maps to a frozen dataclass with a ``from_dict``
parser. Parsers validate eagerly and raise ConfigurationError, so a bad
configuration stops the application at startup instead of at poll time.

Example:
    sftp:
      factory:
        host: sftp.example.com
        username: ingest
        password: ${SFTP_PASSWORD}
      factories:
        one: {host: one.example.com, username: ingest}
      directories: [one.inbox, two.inbox]
      fair: false
      max_fetch: 10
    trigger:
      fixed_delay: 5
"""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from sftpstream.config.loader import Config
from sftpstream.exceptions import ConfigurationError


class TransferType(str, Enum):
    """Where listed remote files are copied to."""

    NONE = "none"
    LOCAL = "local"
    S3 = "s3"
    CF_VOLUME = "cf_volume"


class TaskLaunchRequestType(str, Enum):
    """Shape of the task launch request emitted for each file."""

    NONE = "none"
    DATAFLOW = "dataflow"
    STANDALONE = "standalone"


class SinkMode(str, Enum):
    """What the sink does when the remote target already exists."""

    REPLACE = "replace"
    APPEND = "append"
    FAIL = "fail"
    IGNORE = "ignore"


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ConfigurationError(f"'{name}' must be a boolean, got {value!r}")


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from None


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}") from None


def _as_enum(enum_cls: type[Enum], value: Any, name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigurationError(f"'{name}' must be one of: {allowed}; got {value!r}") from None


def _as_mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ServerCredentials:
    """Connection settings for one SFTP server."""

    host: str = "localhost"
    port: int = 22
    username: str | None = None
    password: str | None = None
    # Path to a key file, or the PEM text itself
    private_key: str | None = None
    passphrase: str | None = None
    allow_unknown_keys: bool = False
    known_hosts: str | None = None
    cache_sessions: bool | None = None
    connect_timeout_s: float = 15.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, *, name: str = "sftp.factory") -> ServerCredentials:
        data = _as_mapping(data, name)
        creds = cls(
            host=str(data.get("host", "localhost") or ""),
            port=_as_int(data.get("port", 22), f"{name}.port"),
            username=data.get("username"),
            password=data.get("password"),
            private_key=data.get("private_key") or None,
            passphrase=data.get("passphrase") or data.get("pass_phrase") or None,
            allow_unknown_keys=_as_bool(data.get("allow_unknown_keys", False), f"{name}.allow_unknown_keys"),
            known_hosts=data.get("known_hosts") or None,
            cache_sessions=(
                None
                if data.get("cache_sessions") is None
                else _as_bool(data["cache_sessions"], f"{name}.cache_sessions")
            ),
            connect_timeout_s=_as_float(data.get("connect_timeout_s", 15.0), f"{name}.connect_timeout_s"),
        )
        creds.validate(name)
        return creds

    def validate(self, name: str = "sftp.factory") -> None:
        if not self.host.strip():
            raise ConfigurationError(f"'{name}.host' must not be blank")
        if not self.username or not str(self.username).strip():
            raise ConfigurationError(f"'{name}.username' must not be blank")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"'{name}.port' must be between 0 and 65535, got {self.port}")

    def masked(self) -> dict[str, Any]:
        """Dict view with secrets replaced, for display."""
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": "****" if self.password else None,
            "private_key": "****" if self.private_key else None,
            "allow_unknown_keys": self.allow_unknown_keys,
            "known_hosts": self.known_hosts,
        }


def resolve_credentials(
    default: ServerCredentials, factories: dict[str, ServerCredentials], key: str | None
) -> ServerCredentials:
    """Credentials for a rotation key; a key without an entry uses ``default``."""
    if key is not None and key in factories:
        return factories[key]
    return default


@dataclass(frozen=True)
class SourceProperties:
    """The ``sftp`` section: what to poll and how to shape the output."""

    factory: ServerCredentials = field(default_factory=lambda: ServerCredentials(username="anonymous"))
    factories: dict[str, ServerCredentials] = field(default_factory=dict)
    directories: tuple[str, ...] = ()
    fair: bool = False
    remote_dir: str = "/"
    remote_file_separator: str = "/"
    tmp_file_suffix: str = ".tmp"
    local_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "sftp-source")
    auto_create_local_dir: bool = True
    delete_remote_files: bool = False
    preserve_timestamp: bool = True
    filename_pattern: str | None = None
    filename_regex: re.Pattern[str] | None = None
    stream: bool = False
    list_only: bool = False
    max_fetch: int | None = None
    # None: on for synchronize and stream, off when names are emitted
    accept_once: bool | None = None
    transfer_to: TransferType = TransferType.NONE
    task_launcher_output: TaskLaunchRequestType = TaskLaunchRequestType.NONE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SourceProperties:
        data = _as_mapping(data, "sftp")

        factories = {
            str(key): ServerCredentials.from_dict(value, name=f"sftp.factories.{key}")
            for key, value in _as_mapping(data.get("factories"), "sftp.factories").items()
        }

        directories = data.get("directories") or ()
        if isinstance(directories, str):
            directories = [d.strip() for d in directories.split(",") if d.strip()]
        if not isinstance(directories, (list, tuple)):
            raise ConfigurationError(f"'sftp.directories' must be a list, got {type(directories).__name__}")

        regex = data.get("filename_regex")
        try:
            compiled = re.compile(regex) if regex else None
        except re.error as e:
            raise ConfigurationError(f"'sftp.filename_regex' is not a valid regex: {e}") from e

        max_fetch = data.get("max_fetch")

        props = cls(
            factory=ServerCredentials.from_dict(data.get("factory"), name="sftp.factory"),
            factories=factories,
            directories=tuple(str(d) for d in directories),
            fair=_as_bool(data.get("fair", False), "sftp.fair"),
            remote_dir=str(data.get("remote_dir", "/")),
            remote_file_separator=str(data.get("remote_file_separator", "/")),
            tmp_file_suffix=str(data.get("tmp_file_suffix", ".tmp")),
            local_dir=Path(data.get("local_dir") or Path(tempfile.gettempdir()) / "sftp-source"),
            auto_create_local_dir=_as_bool(data.get("auto_create_local_dir", True), "sftp.auto_create_local_dir"),
            delete_remote_files=_as_bool(data.get("delete_remote_files", False), "sftp.delete_remote_files"),
            preserve_timestamp=_as_bool(data.get("preserve_timestamp", True), "sftp.preserve_timestamp"),
            filename_pattern=data.get("filename_pattern") or None,
            filename_regex=compiled,
            stream=_as_bool(data.get("stream", False), "sftp.stream"),
            list_only=_as_bool(data.get("list_only", False), "sftp.list_only"),
            max_fetch=None if max_fetch is None else _as_int(max_fetch, "sftp.max_fetch"),
            accept_once=(
                None if data.get("accept_once") is None else _as_bool(data["accept_once"], "sftp.accept_once")
            ),
            transfer_to=_as_enum(TransferType, data.get("transfer_to", "none"), "sftp.transfer_to"),
            task_launcher_output=_as_enum(
                TaskLaunchRequestType, data.get("task_launcher_output", "none"), "sftp.task_launcher_output"
            ),
        )
        props.validate()
        return props

    def validate(self) -> None:
        errors = []
        if not self.remote_dir.strip():
            errors.append("'sftp.remote_dir' must not be blank")
        if not self.remote_file_separator:
            errors.append("'sftp.remote_file_separator' must not be blank")
        if not self.tmp_file_suffix:
            errors.append("'sftp.tmp_file_suffix' must not be blank")
        if self.filename_pattern and self.filename_regex is not None:
            errors.append("filename_pattern and filename_regex are mutually exclusive")
        if self.stream and self.list_only:
            errors.append("stream and list_only are mutually exclusive")
        if self.transfer_to is not TransferType.NONE and (self.stream or self.list_only):
            errors.append("transfer_to cannot be combined with stream or list_only")
        if self.max_fetch is not None and self.max_fetch < 1:
            errors.append(f"'sftp.max_fetch' must be positive, got {self.max_fetch}")
        if errors:
            raise ConfigurationError("\n".join(errors))

    @property
    def is_multi_source(self) -> bool:
        return len(self.directories) > 0

    @property
    def lists_names(self) -> bool:
        """True when the source emits remote file names rather than contents."""
        return self.list_only or self.transfer_to is not TransferType.NONE

    @property
    def accepts_once(self) -> bool:
        """Whether listings go through the persistent accept-once filter."""
        if self.accept_once is not None:
            return self.accept_once
        return not self.lists_names

    def credentials_for(self, key: str | None) -> ServerCredentials:
        return resolve_credentials(self.factory, self.factories, key)


@dataclass(frozen=True)
class TriggerProperties:
    """The ``trigger`` section: poller cadence."""

    fixed_delay: float = 1.0
    initial_delay: float = 0.0
    # Messages emitted per tick; -1 for unlimited
    max_messages: int = -1

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TriggerProperties:
        data = _as_mapping(data, "trigger")
        props = cls(
            fixed_delay=_as_float(data.get("fixed_delay", 1.0), "trigger.fixed_delay"),
            initial_delay=_as_float(data.get("initial_delay", 0.0), "trigger.initial_delay"),
            max_messages=_as_int(data.get("max_messages", -1), "trigger.max_messages"),
        )
        if props.fixed_delay < 0 or props.initial_delay < 0:
            raise ConfigurationError("trigger delays must not be negative")
        if props.max_messages == 0 or props.max_messages < -1:
            raise ConfigurationError(f"'trigger.max_messages' must be -1 or positive, got {props.max_messages}")
        return props


@dataclass(frozen=True)
class MetadataProperties:
    """The ``metadata`` section: seen-key store for idempotent receipt."""

    store: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_key: str = "MetaData"
    key_strategy: str = "remote_path"
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MetadataProperties:
        data = _as_mapping(data, "metadata")
        redis_cfg = _as_mapping(data.get("redis"), "metadata.redis")
        props = cls(
            store=str(data.get("store", "memory")).lower(),
            redis_url=str(redis_cfg.get("url", "redis://localhost:6379/0")),
            redis_key=str(redis_cfg.get("key", "MetaData")),
            key_strategy=str(data.get("key_strategy", "remote_path")).lower(),
            enabled=_as_bool(data.get("enabled", True), "metadata.enabled"),
        )
        if props.store not in ("memory", "redis"):
            raise ConfigurationError(f"'metadata.store' must be 'memory' or 'redis', got {props.store!r}")
        if props.key_strategy not in ("remote_path", "payload"):
            raise ConfigurationError(
                f"'metadata.key_strategy' must be 'remote_path' or 'payload', got {props.key_strategy!r}"
            )
        return props


@dataclass(frozen=True)
class S3Properties:
    """The ``aws.s3`` section used by the S3 transfer target."""

    bucket: str = ""
    region: str | None = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    create_bucket: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> S3Properties:
        data = _as_mapping(data, "aws.s3")
        return cls(
            bucket=str(data.get("bucket", "") or ""),
            region=data.get("region", "us-east-1"),
            endpoint_url=data.get("endpoint_url") or data.get("endpoint"),
            access_key_id=data.get("access_key_id") or data.get("access_key"),
            secret_access_key=data.get("secret_access_key") or data.get("secret_key"),
            create_bucket=_as_bool(data.get("create_bucket", True), "aws.s3.create_bucket"),
        )


@dataclass(frozen=True)
class TaskProperties:
    """The ``task`` section plus ``sftp.multisource.task_names``."""

    application_name: str | None = None
    resource_uri: str = ""
    deployment_properties: str | None = None
    environment_properties: str | None = None
    remote_file_path_parameter_name: str = "remoteFilePath"
    local_file_path_parameter_name: str = "localFilePath"
    parameters: tuple[str, ...] = ()
    task_names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, task_names: dict[str, Any] | None = None) -> TaskProperties:
        data = _as_mapping(data, "task")
        parameters = data.get("parameters") or ()
        if isinstance(parameters, str):
            parameters = [parameters]
        return cls(
            application_name=data.get("application_name"),
            resource_uri=str(data.get("resource_uri", "") or ""),
            deployment_properties=data.get("deployment_properties"),
            environment_properties=data.get("environment_properties"),
            remote_file_path_parameter_name=str(data.get("remote_file_path_parameter_name", "remoteFilePath")),
            local_file_path_parameter_name=str(data.get("local_file_path_parameter_name", "localFilePath")),
            parameters=tuple(str(p) for p in parameters),
            task_names={str(k): str(v) for k, v in _as_mapping(task_names, "sftp.multisource.task_names").items()},
        )


@dataclass(frozen=True)
class OutputProperties:
    """The ``output`` section: where emitted messages go."""

    type: str = "log"
    redis_url: str = "redis://localhost:6379/0"
    stream: str = "sftpstream-output"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OutputProperties:
        data = _as_mapping(data, "output")
        props = cls(
            type=str(data.get("type", "log")).lower(),
            redis_url=str(data.get("url", "redis://localhost:6379/0")),
            stream=str(data.get("stream", "sftpstream-output")),
        )
        if props.type not in ("log", "memory", "redis"):
            raise ConfigurationError(f"'output.type' must be one of: log, memory, redis; got {props.type!r}")
        return props


@dataclass(frozen=True)
class SinkProperties:
    """The ``sink`` section: uploading files to an SFTP server."""

    factory: ServerCredentials = field(default_factory=lambda: ServerCredentials(username="anonymous"))
    remote_dir: str = "/"
    remote_file_separator: str = "/"
    tmp_file_suffix: str = ".tmp"
    use_temporary_filename: bool = True
    auto_create_dir: bool = True
    mode: SinkMode = SinkMode.REPLACE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, default_factory: ServerCredentials) -> SinkProperties:
        data = _as_mapping(data, "sink")
        factory = (
            ServerCredentials.from_dict(data["factory"], name="sink.factory")
            if data.get("factory") is not None
            else default_factory
        )
        return cls(
            factory=factory,
            remote_dir=str(data.get("remote_dir", "/")),
            remote_file_separator=str(data.get("remote_file_separator", "/")),
            tmp_file_suffix=str(data.get("tmp_file_suffix", ".tmp")),
            use_temporary_filename=_as_bool(data.get("use_temporary_filename", True), "sink.use_temporary_filename"),
            auto_create_dir=_as_bool(data.get("auto_create_dir", True), "sink.auto_create_dir"),
            mode=_as_enum(SinkMode, data.get("mode", "replace"), "sink.mode"),
        )


@dataclass(frozen=True)
class AppProperties:
    """All sections bound together."""

    source: SourceProperties
    trigger: TriggerProperties
    metadata: MetadataProperties
    s3: S3Properties
    task: TaskProperties
    output: OutputProperties
    sink: SinkProperties
    nfs_service_name: str = "nfs"

    @classmethod
    def from_config(cls, config: Config) -> AppProperties:
        source = SourceProperties.from_dict(config.section("sftp"))
        multisource = _as_mapping(config.get("sftp.multisource"), "sftp.multisource")
        return cls(
            source=source,
            trigger=TriggerProperties.from_dict(config.section("trigger")),
            metadata=MetadataProperties.from_dict(config.section("metadata")),
            s3=S3Properties.from_dict(config.get("aws.s3")),
            task=TaskProperties.from_dict(config.section("task"), multisource.get("task_names")),
            output=OutputProperties.from_dict(config.section("output")),
            sink=SinkProperties.from_dict(config.section("sink"), source.factory),
            nfs_service_name=str(config.get("nfs.service_name", "nfs")),
        )
