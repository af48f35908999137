"""
Tests for the buildpack registry and real installs on the local biome.
"""

import io
import os
import threading
from pathlib import Path

import pytest

from yb.adapters.biome import EnvBiome, Invocation, eval_symlinks, local_descriptor
from yb.core.context import background
from yb.core.errors import BiomeError, Cancelled, InstallError, UnknownBuildpackError
from yb.core.models import LINUX, X86_64, BuildpackSpec, Environment
from yb.core.services.buildpack import PACKS, Sys, install, names
from yb.core.services.buildpack.installers.openjdk import java_download_url
from yb.core.services.buildpack.registry import LOCK_GROUPS, _install_lock

from conftest import CancellingBody, make_tar_gz, requires_tar

ALL_PACKS = [
    "anaconda2",
    "anaconda3",
    "android",
    "androidndk",
    "ant",
    "dart",
    "flutter",
    "glide",
    "go",
    "gradle",
    "heroku",
    "java",
    "maven",
    "miniforge",
    "node",
    "protoc",
    "python",
    "r",
    "ruby",
    "rust",
    "yarn",
]

_host = local_descriptor()
linux_amd64_only = pytest.mark.skipif(
    (_host.os, _host.arch) != (LINUX, X86_64),
    reason="download URL depends on the host platform",
)


def _tools(local_sys: Sys) -> Path:
    return Path(local_sys.biome.dirs().tools)


# ── Registry ────────────────────────────────────────────────────


class TestRegistry:
    def test_names(self):
        assert names() == ALL_PACKS
        assert sorted(PACKS) == ALL_PACKS

    def test_unknown_buildpack(self, local_sys: Sys, fake_web):
        with pytest.raises(UnknownBuildpackError, match="no such buildpack"):
            install(background(), local_sys, BuildpackSpec.parse("cobol:1.0"))
        assert fake_web.total_hits() == 0

    def test_conda_variants_share_a_lock(self):
        lock = _install_lock("/tools", "python")
        for name in ("anaconda2", "anaconda3", "miniforge"):
            assert LOCK_GROUPS[name] == "miniconda"
            assert _install_lock("/tools", name) is lock

    def test_locks_are_per_tools_dir_and_pack(self):
        assert _install_lock("/a", "go") is not _install_lock("/b", "go")
        assert _install_lock("/a", "go") is not _install_lock("/a", "node")
        assert _install_lock("/a", "go") is _install_lock("/a", "go")

    def test_cancelled_while_waiting_for_lock(self, local_sys: Sys):
        lock = _install_lock(local_sys.biome.dirs().tools, "go")
        held = threading.Event()
        release = threading.Event()

        def holder():
            with lock:
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            held.wait(5)
            ctx = background()
            ctx.cancel()
            with pytest.raises(Cancelled):
                install(ctx, local_sys, BuildpackSpec.parse("go:1.15.2"))
        finally:
            release.set()
            t.join()


# ── Local installs ──────────────────────────────────────────────


class TestGoCached:
    def test_existing_install_needs_no_network(self, local_sys: Sys, fake_web):
        tools = _tools(local_sys)
        go_bin = tools / "go" / "go1.15.2" / "bin"
        go_bin.mkdir(parents=True)
        (go_bin / "go").write_text("#!/bin/sh\n")

        env = install(background(), local_sys, BuildpackSpec.parse("go:1.15.2"))

        package = local_sys.biome.dirs().package
        assert env == Environment(
            vars={
                "GOROOT": str(tools / "go" / "go1.15.2"),
                "GOPATH": f"{tools / 'go' / 'gopath'}:{package}",
            },
            prepend_path=[str(tools / "go" / "gopath"), str(go_bin)],
        )
        assert fake_web.total_hits() == 0


@requires_tar
class TestNodeFresh:
    URL = "https://nodejs.org/dist/v12.19.0/node-v12.19.0-linux-x64.tar.gz"

    @linux_amd64_only
    def test_install_and_run(self, local_sys: Sys, fake_web):
        fake_web.pages[self.URL] = make_tar_gz(
            {"node-v12.19.0-linux-x64/bin/node": (b"#!/bin/sh\necho v12.19.0\n", 0o755)}
        )
        ctx = background()

        env = install(ctx, local_sys, BuildpackSpec.parse("node:12.19.0"))

        assert fake_web.hits == {self.URL: 1}
        out = io.BytesIO()
        EnvBiome(local_sys.biome, env).run(ctx, Invocation(argv=["node", "--version"], stdout=out))
        assert out.getvalue() == b"v12.19.0\n"


@requires_tar
class TestIdempotency:
    URL = "https://github.com/yarnpkg/yarn/releases/download/v1.22.10/yarn-v1.22.10.tar.gz"

    def test_second_install_does_no_work(self, local_sys: Sys, fake_web):
        fake_web.pages[self.URL] = make_tar_gz({"yarn-v1.22.10/bin/yarn": (b"#!/bin/sh\necho 1.22.10\n", 0o755)})
        spec = BuildpackSpec.parse("yarn:1.22.10")

        first = install(background(), local_sys, spec)
        for cached in local_sys.downloader.directory.iterdir():
            cached.unlink()
        second = install(background(), local_sys, spec)

        assert first == second
        assert fake_web.hits == {self.URL: 1}
        assert (_tools(local_sys) / "yarn" / "yarn-v1.22.10" / "bin" / "yarn").is_file()

    def test_concurrent_installs_download_once(self, local_sys: Sys, fake_web):
        fake_web.pages[self.URL] = make_tar_gz({"yarn-v1.22.10/bin/yarn": (b"#!/bin/sh\n", 0o755)})
        spec = BuildpackSpec.parse("yarn:1.22.10")
        results, errors = [], []

        def worker():
            try:
                results.append(install(background(), local_sys, spec))
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 4
        assert fake_web.hits == {self.URL: 1}

    def test_failed_install_leaves_nothing(self, local_sys: Sys, fake_web):
        fake_web.pages[self.URL] = b"not a tarball"
        with pytest.raises(InstallError):
            install(background(), local_sys, BuildpackSpec.parse("yarn:1.22.10"))
        assert not (_tools(local_sys) / "yarn" / "yarn-v1.22.10").exists()
        assert not (_tools(local_sys) / "yarn" / "yarn-v1.22.10.tar.gz").exists()


class TestInstallCancellation:
    def test_cancel_during_download(self, local_sys: Sys, fake_web):
        try:
            url = java_download_url("15+36", local_sys.biome.describe())
        except Exception:
            pytest.skip("no AdoptOpenJDK build for this host")
        ctx = background()
        fake_web.body_factory[url] = lambda: CancellingBody(ctx, 1 << 20)

        with pytest.raises(Cancelled):
            install(ctx, local_sys, BuildpackSpec.parse("java:15+36"))

        tools = _tools(local_sys)
        with pytest.raises(BiomeError):
            eval_symlinks(background(), local_sys.biome, str(tools / "java" / "openjdk15+36"))
        staged = [
            os.path.join(root, name)
            for root, _, files in os.walk(tools)
            for name in files
            if name.endswith((".tar.gz", ".zip"))
        ]
        assert staged == []
        assert not local_sys.downloader.cache_path(url).exists()
