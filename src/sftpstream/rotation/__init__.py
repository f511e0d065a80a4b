"""
Multi-server rotation.

Registry of (server key, directory) targets, the policy that picks the next
one, and the binding that tracks the key of the tick in flight.
"""

from sftpstream.rotation.binding import SessionKeyBinding
from sftpstream.rotation.policy import RotationPolicy, RotationState
from sftpstream.rotation.registry import KeyDirectory, ServerDirectoryRegistry

__all__ = [
    "KeyDirectory",
    "ServerDirectoryRegistry",
    "RotationPolicy",
    "RotationState",
    "SessionKeyBinding",
]
