"""
Transfer of listed remote files to local, NFS or S3 storage.
"""

from sftpstream.transfer.nfs import nfs_root
from sftpstream.transfer.s3 import S3InputStreamPersister, build_s3_client
from sftpstream.transfer.service import (
    FileInputStreamPersister,
    FileTransferService,
    InputStreamPersister,
    InputStreamTransfer,
)

__all__ = [
    "FileInputStreamPersister",
    "FileTransferService",
    "InputStreamPersister",
    "InputStreamTransfer",
    "S3InputStreamPersister",
    "build_s3_client",
    "nfs_root",
]
