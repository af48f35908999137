"""
Docker access through the ``docker`` CLI.
"""

from yb.adapters.docker.client import DOCKER_API_VERSION, DockerClient

__all__ = ["DOCKER_API_VERSION", "DockerClient"]
