"""
Task launch requests: one per received file, for a task runner to pick up.

A request names the task to run and carries the remote (and, when the file was
copied, local) path as command line arguments. When only names were listed the
task needs to fetch the file itself, so the SFTP connection settings are passed
along too: as command line arguments for ``dataflow`` requests, as environment
variables for ``standalone`` ones.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sftpstream.config.properties import SourceProperties, TaskLaunchRequestType, TaskProperties
from sftpstream.exceptions import TaskLaunchError
from sftpstream.messaging import (
    REMOTE_DIRECTORY,
    REMOTE_FILE,
    SELECTED_SERVER_HEADERS,
    SFTP_HOST,
    SFTP_PASSWORD,
    SFTP_PORT,
    SFTP_SELECTED_SERVER,
    SFTP_USERNAME,
    TASK_LAUNCH_REQUEST,
    Message,
)
from sftpstream.metadata.idempotency import join_remote_path
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.source.tasklauncher")


@dataclass
class TaskLaunchRequest:
    task_name: str | None
    args: list[str] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    deployment_properties: dict[str, str] = field(default_factory=dict)
    resource_uri: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_name": self.task_name,
            "args": list(self.args),
            "environment": dict(self.environment),
            "deployment_properties": dict(self.deployment_properties),
            "resource_uri": self.resource_uri,
        }


def parse_properties(value: str | None) -> dict[str, str]:
    """Parse ``a=b,c=d`` into a dict; entries without ``=`` are rejected."""
    result: dict[str, str] = {}
    if not value:
        return result
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        if "=" not in item:
            raise TaskLaunchError(f"Invalid property '{item}', expected key=value")
        key, _, val = item.partition("=")
        result[key.strip()] = val.strip()
    return result


class TaskLaunchRequestBuilder:
    """
    Turns received-file messages into task launch request messages.

    Args:
        kind: ``dataflow`` or ``standalone``
        task: The ``task`` configuration section
        source: The ``sftp`` configuration section
        local_dir: Directory files are copied to (the persister root when a
            transfer target is configured)
    """

    def __init__(
        self,
        kind: TaskLaunchRequestType,
        task: TaskProperties,
        source: SourceProperties,
        local_dir: str | Path | None = None,
    ):
        if kind is TaskLaunchRequestType.NONE:
            raise TaskLaunchError("Task launch request type 'none' does not build requests")
        self.kind = kind
        self.task = task
        self.source = source
        self.local_dir = Path(local_dir) if local_dir is not None else Path(source.local_dir)
        self._deployment_properties = parse_properties(task.deployment_properties)
        self._environment_properties = parse_properties(task.environment_properties)

    def build(self, message: Message) -> TaskLaunchRequest:
        request = TaskLaunchRequest(
            task_name=self.task_name(message),
            deployment_properties=dict(self._deployment_properties),
            environment=dict(self._environment_properties),
            resource_uri=self.task.resource_uri or None,
        )

        remote = self.remote_file_path(message)
        if remote:
            request.args.append(f"{self.task.remote_file_path_parameter_name}={remote}")
        if self.source.is_multi_source and self.kind is TaskLaunchRequestType.DATAFLOW:
            request.args.append(f"{SFTP_SELECTED_SERVER}={message.headers.get(SFTP_SELECTED_SERVER)}")

        if self.source.list_only:
            connection = self._connection_info(message)
            if self.kind is TaskLaunchRequestType.DATAFLOW:
                request.args.extend(f"{k}={v}" for k, v in connection.items())
            else:
                request.environment.update(connection)
        else:
            request.args.append(f"{self.task.local_file_path_parameter_name}={self.local_file_path(message)}")

        request.args.extend(self.task.parameters)
        return request

    def transform(self, message: Message) -> Message:
        """Message whose payload is the launch request; selected-server headers dropped."""
        request = self.build(message)
        logger.debug(f"Prepared {self.kind.value} task launch request for {request.task_name}")
        out = message.with_payload(request.to_dict()).with_headers(**{TASK_LAUNCH_REQUEST: self.kind.value})
        if self.source.is_multi_source:
            out = out.without_headers(*SELECTED_SERVER_HEADERS)
        return out

    def task_name(self, message: Message) -> str | None:
        if not self.task.task_names:
            return self.task.application_name
        key = message.headers.get(SFTP_SELECTED_SERVER)
        name = self.task.task_names.get(str(key)) if key is not None else None
        if not name:
            raise TaskLaunchError(f"No task name configured for server key '{key}'", details={"key": key})
        return name

    def remote_file_path(self, message: Message) -> str:
        directory = message.headers.get(REMOTE_DIRECTORY)
        filename = message.headers.get(REMOTE_FILE)
        if not directory or not filename:
            return ""
        return join_remote_path(str(directory), str(filename), self.source.remote_file_separator)

    def local_file_path(self, message: Message) -> str:
        payload = message.payload
        if isinstance(payload, str) and os.path.isabs(payload):
            return payload
        filename = message.headers.get(REMOTE_FILE) or str(payload)
        return str(self.local_dir / filename)

    def _connection_info(self, message: Message) -> dict[str, str]:
        if not self.source.is_multi_source:
            creds = self.source.factory
            return {
                SFTP_HOST: str(creds.host),
                SFTP_USERNAME: str(creds.username),
                SFTP_PASSWORD: str(creds.password),
                SFTP_PORT: str(creds.port),
            }
        headers = message.headers
        info = {
            SFTP_HOST: str(headers.get(SFTP_HOST)),
            SFTP_PORT: str(headers.get(SFTP_PORT)),
            SFTP_USERNAME: str(headers.get(SFTP_USERNAME)),
            SFTP_PASSWORD: str(headers.get(SFTP_PASSWORD)),
        }
        if self.kind is TaskLaunchRequestType.STANDALONE:
            info[SFTP_SELECTED_SERVER] = str(headers.get(SFTP_SELECTED_SERVER))
        return info
