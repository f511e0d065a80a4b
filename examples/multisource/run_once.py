"""
Run one poll tick per configured target for the demo project and print the summaries.
"""

from __future__ import annotations

from pathlib import Path

from sftpstream.app import build_poller, initialize


def main() -> None:
    project_dir = Path(__file__).parent
    _, props = initialize(project_dir)
    poller = build_poller(props)
    try:
        for _ in range(len(props.source.directories) or 1):
            print(poller.poll_once().to_dict())
    finally:
        poller.close()


if __name__ == "__main__":
    main()
