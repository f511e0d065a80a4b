"""
Inbound SFTP source: listing filters, poll-cycle orchestration, poller and
task launch requests.
"""

from sftpstream.source.filters import (
    CompositeFilter,
    GlobFilter,
    PersistentAcceptOnceFilter,
    RegexFilter,
    build_filters,
)
from sftpstream.source.inbound import SftpInboundSource
from sftpstream.source.orchestrator import PollCycleOrchestrator
from sftpstream.source.poller import Poller, TickSummary
from sftpstream.source.tasklauncher import TaskLaunchRequest, TaskLaunchRequestBuilder, parse_properties

__all__ = [
    "CompositeFilter",
    "GlobFilter",
    "PersistentAcceptOnceFilter",
    "RegexFilter",
    "build_filters",
    "SftpInboundSource",
    "PollCycleOrchestrator",
    "Poller",
    "TickSummary",
    "TaskLaunchRequest",
    "TaskLaunchRequestBuilder",
    "parse_properties",
]
