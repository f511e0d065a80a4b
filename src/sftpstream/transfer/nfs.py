"""
Cloud Foundry volume services: find the NFS mount directory in VCAP_SERVICES.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from sftpstream.exceptions import ConfigurationError


def nfs_root(vcap_services: str | None = None, service_name: str = "nfs") -> Path:
    """
    Container directory of the first volume mount of ``service_name``.

    The service is matched by its name, then by its label. ``vcap_services``
    defaults to the ``VCAP_SERVICES`` environment variable.
    """
    raw = vcap_services if vcap_services is not None else os.environ.get("VCAP_SERVICES")
    if not raw:
        raise ConfigurationError("VCAP_SERVICES is not set; cf_volume transfer needs a bound NFS service")
    try:
        services: dict[str, list[dict[str, Any]]] = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"VCAP_SERVICES is not valid JSON: {e}") from e

    candidates = [s for entries in services.values() for s in entries]
    service = next((s for s in candidates if s.get("name") == service_name), None)
    if service is None:
        service = next((s for s in candidates if s.get("label") == service_name), None)
    if service is None:
        raise ConfigurationError(f"No service named '{service_name}' in VCAP_SERVICES")

    mounts = service.get("volume_mounts") or []
    if not mounts or not mounts[0].get("container_dir"):
        raise ConfigurationError(f"Service '{service_name}' has no volume mounts")
    return Path(mounts[0]["container_dir"])
