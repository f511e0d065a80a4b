"""
Application wiring.

Builds a ready-to-run Poller (or SftpSink) from configuration, in order:

1. Config and logging
2. Metadata store and idempotency filter
3. Session factory, listing filters and inbound source
4. Rotation (when ``sftp.directories`` is set)
5. Transfer target, task launch requests and emitter
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from sftpstream.config.loader import Config, load_config
from sftpstream.config.properties import AppProperties, MetadataProperties, TaskLaunchRequestType, TransferType
from sftpstream.connections.session_factory import ConnectionFactory, DelegatingSessionFactory
from sftpstream.connections.sftp import SFTPConnection
from sftpstream.emitters import Emitter, build_emitter
from sftpstream.metadata import KEY_STRATEGIES, IdempotencyFilter, InMemoryMetadataStore, RedisMetadataStore
from sftpstream.metadata.store import MetadataStore
from sftpstream.rotation import RotationPolicy, ServerDirectoryRegistry
from sftpstream.sink import SftpSink
from sftpstream.source.filters import build_filters
from sftpstream.source.inbound import SftpInboundSource
from sftpstream.source.orchestrator import PollCycleOrchestrator
from sftpstream.source.poller import Poller
from sftpstream.source.tasklauncher import TaskLaunchRequestBuilder
from sftpstream.transfer import FileInputStreamPersister, FileTransferService, S3InputStreamPersister, nfs_root
from sftpstream.transfer.service import InputStreamPersister
from sftpstream.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("sftpstream.app")


def initialize(
    project_dir: Path | None = None, env: str | None = None, verbose: bool = False
) -> tuple[Config, AppProperties]:
    """
    Load and validate configuration, then set up logging.

    Raises:
        ConfigurationError: If the configuration is missing or invalid
    """
    project_dir = Path(project_dir or Path.cwd())
    env = env or os.environ.get("SFTPSTREAM_ENV")
    config = load_config(project_dir, env=env)
    logging_config: dict[str, Any] = {"logging": dict(config.section("logging"))}
    if verbose:
        logging_config["logging"]["level"] = "DEBUG"
    setup_logging_from_config(logging_config, project_dir)
    props = AppProperties.from_config(config)
    logger.debug(f"Loaded configuration from {project_dir} (env={env or 'default'})")
    return config, props


def build_metadata_store(props: MetadataProperties) -> MetadataStore:
    if props.store == "redis":
        return RedisMetadataStore(props.redis_url, key=props.redis_key)
    return InMemoryMetadataStore()


def build_persister(props: AppProperties, s3_client: Any = None) -> tuple[InputStreamPersister, Path]:
    """Persister for ``sftp.transfer_to`` and the local directory task requests refer to."""
    transfer_to = props.source.transfer_to
    if transfer_to is TransferType.LOCAL:
        return FileInputStreamPersister(props.source.local_dir), Path(props.source.local_dir)
    if transfer_to is TransferType.CF_VOLUME:
        root = nfs_root(service_name=props.nfs_service_name)
        return FileInputStreamPersister(root), root
    if transfer_to is TransferType.S3:
        return S3InputStreamPersister.from_properties(props.s3, s3_client), Path(props.source.local_dir)
    raise ValueError(f"No persister for transfer type '{transfer_to.value}'")


def build_poller(
    props: AppProperties,
    *,
    connection_factory: ConnectionFactory = SFTPConnection,
    emitter: Emitter | None = None,
    store: MetadataStore | None = None,
    s3_client: Any = None,
) -> Poller:
    source_props = props.source
    store = store if store is not None else build_metadata_store(props.metadata)

    sessions = DelegatingSessionFactory.from_properties(source_props, connection_factory=connection_factory)
    source = SftpInboundSource(source_props, build_filters(source_props, store))

    orchestrator = None
    if source_props.is_multi_source:
        registry = ServerDirectoryRegistry.from_strings(source_props.directories)
        orchestrator = PollCycleOrchestrator(
            RotationPolicy(registry, fair=source_props.fair), sessions.credentials_for
        )
        logger.info(
            f"Rotating over {len(registry)} target(s) ({'fair' if source_props.fair else 'exhaustive'}): "
            f"{', '.join(str(e) for e in registry)}"
        )

    idempotency = None
    if props.metadata.enabled:
        idempotency = IdempotencyFilter(store, KEY_STRATEGIES[props.metadata.key_strategy])

    transfer = None
    local_dir = Path(source_props.local_dir)
    if source_props.transfer_to is not TransferType.NONE:
        persister, local_dir = build_persister(props, s3_client)
        transfer = FileTransferService(sessions, persister, source_props.remote_file_separator)

    task_launcher = None
    if source_props.task_launcher_output is not TaskLaunchRequestType.NONE:
        task_launcher = TaskLaunchRequestBuilder(source_props.task_launcher_output, props.task, source_props, local_dir)

    return Poller(
        source,
        sessions,
        emitter or build_emitter(props.output),
        orchestrator=orchestrator,
        remote_dir=source_props.remote_dir,
        idempotency=idempotency,
        transfer=transfer,
        task_launcher=task_launcher,
        trigger=props.trigger,
    )


def build_sink(props: AppProperties, *, connection_factory: ConnectionFactory = SFTPConnection) -> SftpSink:
    return SftpSink(props.sink, connection_factory=connection_factory)
