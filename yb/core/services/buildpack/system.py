"""
Sys — everything an installer may touch, bundled into one value.
"""

from __future__ import annotations

import urllib.request
from dataclasses import dataclass
from typing import IO

from yb.adapters.biome import Biome
from yb.adapters.docker import DockerClient
from yb.core.services.download import Downloader


@dataclass
class Sys:
    """The environment an installer runs against.

    Attributes:
        biome: Where the buildpack is installed and its commands run.
        downloader: The shared download cache.
        stdout: Sink for installer command output (None discards).
        stderr: Sink for installer command errors (None discards).
        http: Opener for requests that bypass the cache, such as index
            pages (default: the downloader's opener).
        docker: Docker client, when the build uses containers.
        network_id: Docker network the build's containers share.
    """

    biome: Biome
    downloader: Downloader
    stdout: IO | None = None
    stderr: IO | None = None
    http: urllib.request.OpenerDirector | None = None
    docker: DockerClient | None = None
    network_id: str = ""

    @property
    def opener(self) -> urllib.request.OpenerDirector:
        return self.http or self.downloader.opener
