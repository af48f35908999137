"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import email.message
import hashlib
import io
import logging
import shutil
import tarfile
import threading
import urllib.error
import urllib.request
import urllib.response
import zipfile
from pathlib import Path

import pytest

from yb.adapters.biome import LocalBiome
from yb.adapters.biome import container as container_module
from yb.core.context import background
from yb.core.services.buildpack import Sys
from yb.core.services.download import Downloader


def _ok_response(body, headers, url):
    # urllib's HTTPErrorProcessor reads ``.msg`` from http(s) responses.
    resp = urllib.response.addinfourl(body, headers, url, 200)
    resp.msg = "OK"
    return resp


class FakeWeb(urllib.request.BaseHandler):
    """A urllib handler serving canned bodies. Unknown URLs get a 404.

    ``hits`` counts requests per URL.
    """

    handler_order = 100

    def __init__(self, pages: dict[str, bytes] | None = None):
        self.pages = dict(pages or {})
        self.hits: dict[str, int] = {}
        self.mu = threading.Lock()
        self.body_factory = {}

    def total_hits(self) -> int:
        return sum(self.hits.values())

    def _serve(self, req: urllib.request.Request):
        url = req.full_url
        with self.mu:
            self.hits[url] = self.hits.get(url, 0) + 1
        headers = email.message.Message()
        if url in self.body_factory:
            return _ok_response(self.body_factory[url](), headers, url)
        if url not in self.pages:
            raise urllib.error.HTTPError(url, 404, "Not Found", headers, io.BytesIO(b""))
        return _ok_response(io.BytesIO(self.pages[url]), headers, url)

    def http_open(self, req):
        return self._serve(req)

    def https_open(self, req):
        return self._serve(req)


@pytest.fixture
def fake_web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture
def downloader(tmp_path: Path, fake_web: FakeWeb) -> Downloader:
    return Downloader(tmp_path / "downloads", opener=urllib.request.build_opener(fake_web))


@pytest.fixture
def ctx():
    return background()


@pytest.fixture
def local_biome(tmp_path: Path) -> LocalBiome:
    package = tmp_path / "package"
    home = tmp_path / "home"
    tools = tmp_path / "tools"
    for d in (package, home, tools):
        d.mkdir()
    return LocalBiome(str(package), home_dir=str(home), tools_dir=str(tools))


@pytest.fixture
def local_sys(local_biome: LocalBiome, downloader: Downloader) -> Sys:
    return Sys(biome=local_biome, downloader=downloader)


requires_tar = pytest.mark.skipif(shutil.which("tar") is None, reason="tar not installed")
requires_unzip = pytest.mark.skipif(shutil.which("unzip") is None, reason="unzip not installed")


# ── Archive builders ────────────────────────────────────────────


def make_tar_gz(files: dict[str, bytes | tuple[bytes, int]]) -> bytes:
    """Build a .tar.gz in memory. Values are a body or ``(body, mode)``."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        dirs_added = set()
        for name, value in files.items():
            body, mode = value if isinstance(value, tuple) else (value, 0o644)
            parts = name.split("/")[:-1]
            for i in range(len(parts)):
                d = "/".join(parts[: i + 1])
                if d not in dirs_added:
                    info = tarfile.TarInfo(d)
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)
                    dirs_added.add(d)
            info = tarfile.TarInfo(name)
            info.size = len(body)
            info.mode = mode
            tar.addfile(info, io.BytesIO(body))
    return buf.getvalue()


def make_zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, body in files.items():
            zf.writestr(name, body)
    return buf.getvalue()


class CancellingBody:
    """A response body that cancels ``ctx`` as soon as it is first read."""

    closed = False

    def __init__(self, ctx, size: int):
        self.ctx = ctx
        self.remaining = size

    def read(self, n=-1):
        self.ctx.cancel()
        if self.remaining <= 0:
            return b""
        n = self.remaining if n is None or n < 0 else min(n, self.remaining)
        self.remaining -= n
        return b"x" * n

    def close(self):
        self.closed = True


# ── Docker ──────────────────────────────────────────────────────


IMAGE_PATH = "/usr/local/bin:/usr/bin:/bin"


class FakeDockerClient:
    """Records Docker operations instead of performing them."""

    def __init__(self):
        self.images = {"yourbase/yb_ubuntu:18.04": ["HOSTNAME=x", "PATH=" + IMAGE_PATH]}
        self.platform = {"OSType": "linux", "Architecture": "x86_64"}
        self.available = True
        self.calls: list[tuple] = []
        self.containers: dict[str, dict] = {}
        self.copies: list[tuple[str, str, dict]] = []
        self.execs: list[dict] = []
        self.exec_handler = None
        self.failures: dict[str, Exception] = {}
        self.ips: dict[str, str] = {}
        self.stopped = threading.Event()

    def _record(self, *call):
        self.calls.append(call)
        err = self.failures.get(call[0])
        if err is not None:
            raise err

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def is_available(self) -> bool:
        return self.available

    def info(self) -> dict:
        return dict(self.platform)

    def image_exists(self, image: str) -> bool:
        return image in self.images

    def image_env(self, image: str) -> list[str]:
        return self.images.get(image, [])

    def pull(self, ctx, image, output=None):
        self._record("pull", image)
        self.images[image] = []

    def create(self, image, **kwargs) -> str:
        self._record("create", image)
        container_id = f"c{len(self.containers) + 1}"
        self.containers[container_id] = {"image": image, "running": False, **kwargs}
        return container_id

    def start(self, container_id):
        self._record("start", container_id)
        self.containers[container_id]["running"] = True

    def stop(self, container_id, timeout=10):
        self._record("stop", container_id)
        self.containers[container_id]["running"] = False
        self.stopped.set()

    def remove(self, container_id, force=True):
        self._record("remove", container_id)
        self.containers.pop(container_id, None)

    def container_ip(self, container_id, network=""):
        return self.ips.get(container_id, "172.18.0.2")

    def network_create(self, name):
        self._record("network_create", name)
        return "net-1"

    def network_remove(self, network):
        self._record("network_remove", network)

    def network_connect(self, network, container_id):
        self._record("network_connect", network, container_id)

    def copy_to(self, ctx, container_id, dest_dir, write_tar):
        self._record("copy_to", container_id, dest_dir)
        buf = io.BytesIO()
        write_tar(buf)
        buf.seek(0)
        entries = {}
        with tarfile.open(fileobj=buf) as tar:
            for member in tar:
                data = tar.extractfile(member).read() if member.isfile() else None
                entries[member.name] = (member, data)
        self.copies.append((container_id, dest_dir, entries))

    def exec(
        self, container_id, argv, *, env=(), workdir="", stdin=None, stdout=None, stderr=None, on_start=None
    ) -> int:
        self._record("exec", container_id)
        if on_start is not None:
            on_start()
        call = {"argv": list(argv), "env": list(env), "workdir": workdir, "stdout": stdout, "stderr": stderr}
        self.execs.append(call)
        if self.exec_handler is not None:
            return self.exec_handler(call)
        return 0


@pytest.fixture
def docker() -> FakeDockerClient:
    return FakeDockerClient()


TINI_BODY = b"\x7fELF" + b"\0" * (container_module.TINI_SIZE - 4)


@pytest.fixture
def tini(fake_web: FakeWeb, monkeypatch) -> bytes:
    """Serve a stand-in tini binary and trust its checksum."""
    fake_web.pages[container_module.TINI_URL] = TINI_BODY
    monkeypatch.setattr(container_module, "TINI_SHA256", hashlib.sha256(TINI_BODY).hexdigest())
    return TINI_BODY


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo the handlers ``setup_logging`` installs during a test."""
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in before and type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
