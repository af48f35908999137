"""
Tests for the local biome — running host processes and filesystem helpers.
"""

import io
import os
import sys
import threading
import time
from pathlib import Path

import pytest

from yb.adapters.biome import (
    Invocation,
    LocalBiome,
    eval_symlinks,
    exists,
    local_descriptor,
    look_path,
    mkdir_all,
    write_file,
)
from yb.core.context import background
from yb.core.errors import BiomeError, Cancelled, ExitError
from yb.core.models import Environment

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")


class TestDescribe:
    def test_descriptor_matches_host(self):
        desc = local_descriptor()
        assert desc.os in ("linux", "darwin")
        assert desc.arch

    def test_dirs_are_absolute(self, tmp_path: Path):
        bio = LocalBiome(str(tmp_path), home_dir=str(tmp_path / "home"))
        dirs = bio.dirs()
        assert dirs.package == str(tmp_path)
        assert dirs.home == str(tmp_path / "home")
        assert dirs.tools == str(tmp_path / "home" / ".cache" / "yb" / "tools")


class TestRun:
    def test_stdout(self, local_biome: LocalBiome):
        out = io.BytesIO()
        local_biome.run(background(), Invocation(argv=["echo", "hello"], stdout=out))
        assert out.getvalue() == b"hello\n"

    def test_text_stream(self, local_biome: LocalBiome):
        out = io.StringIO()
        local_biome.run(background(), Invocation(argv=["echo", "héllo"], stdout=out))
        assert out.getvalue() == "héllo\n"

    def test_stdin(self, local_biome: LocalBiome):
        out = io.BytesIO()
        local_biome.run(background(), Invocation(argv=["cat"], stdin=io.BytesIO(b"piped"), stdout=out))
        assert out.getvalue() == b"piped"

    def test_env_vars(self, local_biome: LocalBiome):
        out = io.BytesIO()
        local_biome.run(
            background(),
            Invocation(
                argv=["sh", "-c", "echo $FOO; echo $HOME; echo $TZ"],
                env=Environment(vars={"FOO": "BAR"}),
                stdout=out,
            ),
        )
        assert out.getvalue().decode().splitlines() == ["BAR", local_biome.dirs().home, "UTC0"]

    def test_prepend_path(self, local_biome: LocalBiome, tmp_path: Path):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        tool = bin_dir / "mytool"
        tool.write_text("#!/bin/sh\necho from-mytool\n")
        tool.chmod(0o755)

        out = io.BytesIO()
        local_biome.run(
            background(),
            Invocation(argv=["mytool"], env=Environment(prepend_path=[str(bin_dir)]), stdout=out),
        )
        assert out.getvalue() == b"from-mytool\n"

    def test_path_override_with_fragments(self, local_biome: LocalBiome):
        out = io.BytesIO()
        env = Environment(vars={"PATH": "/usr/bin:/bin"}, prepend_path=["/opt/pre"], append_path=["/opt/post"])
        local_biome.run(background(), Invocation(argv=["sh", "-c", "echo $PATH"], env=env, stdout=out))
        assert out.getvalue() == b"/opt/pre:/usr/bin:/bin:/opt/post\n"

    def test_dir_relative_to_package(self, local_biome: LocalBiome):
        sub = Path(local_biome.dirs().package) / "sub"
        sub.mkdir()
        out = io.BytesIO()
        local_biome.run(background(), Invocation(argv=["pwd"], dir="sub", stdout=out))
        assert os.path.realpath(out.getvalue().decode().strip()) == os.path.realpath(sub)

    def test_exit_error(self, local_biome: LocalBiome):
        with pytest.raises(ExitError) as exc_info:
            local_biome.run(background(), Invocation(argv=["sh", "-c", "exit 3"]))
        assert exc_info.value.exit_code == 3

    def _tool(self, directory: Path, output: str) -> None:
        directory.mkdir()
        tool = directory / "mytool"
        tool.write_text(f"#!/bin/sh\necho {output}\n")
        tool.chmod(0o755)

    def test_path_override_selects_program(self, local_biome: LocalBiome, tmp_path: Path):
        self._tool(tmp_path / "first", "first")
        self._tool(tmp_path / "second", "second")

        out = io.BytesIO()
        env = Environment(vars={"PATH": f"{tmp_path / 'second'}:/usr/bin:/bin"}, append_path=[str(tmp_path / "first")])
        local_biome.run(background(), Invocation(argv=["mytool"], env=env, stdout=out))
        assert out.getvalue() == b"second\n"

        out = io.BytesIO()
        env = Environment(vars={"PATH": str(tmp_path / "first")})
        local_biome.run(background(), Invocation(argv=["mytool"], env=env, stdout=out))
        assert out.getvalue() == b"first\n"

    def test_empty_path_override_uses_host_path(self, local_biome: LocalBiome):
        out = io.BytesIO()
        local_biome.run(
            background(),
            Invocation(argv=["sh", "-c", "echo ok"], env=Environment(vars={"PATH": ""}), stdout=out),
        )
        assert out.getvalue() == b"ok\n"

    def test_missing_program(self, local_biome: LocalBiome):
        with pytest.raises(BiomeError, match="not found"):
            local_biome.run(background(), Invocation(argv=["yb-no-such-program-xyz"]))

    def test_empty_argv(self, local_biome: LocalBiome):
        with pytest.raises(ValueError):
            local_biome.run(background(), Invocation(argv=[]))

    def test_invocation_not_mutated(self, local_biome: LocalBiome):
        env = Environment(vars={"A": "1"})
        invoke = Invocation(argv=["true"], env=env)
        local_biome.run(background(), invoke)
        assert list(invoke.argv) == ["true"]
        assert invoke.env is env

    def test_already_cancelled(self, local_biome: LocalBiome):
        ctx = background()
        ctx.cancel()
        with pytest.raises(Cancelled):
            local_biome.run(ctx, Invocation(argv=["true"]))

    def test_cancel_kills_process(self, local_biome: LocalBiome):
        ctx = background()
        threading.Timer(0.2, ctx.cancel).start()
        start = time.monotonic()
        with pytest.raises(Cancelled):
            local_biome.run(ctx, Invocation(argv=["sleep", "30"]))
        assert time.monotonic() - start < 10


class TestFilesystem:
    def test_write_file(self, local_biome: LocalBiome):
        write_file(background(), local_biome, "out.txt", io.BytesIO(b"data"))
        assert (Path(local_biome.dirs().package) / "out.txt").read_bytes() == b"data"

    def test_write_file_replaces(self, local_biome: LocalBiome):
        path = Path(local_biome.dirs().package) / "out.txt"
        path.write_bytes(b"old contents that are longer")
        write_file(background(), local_biome, str(path), io.BytesIO(b"new"))
        assert path.read_bytes() == b"new"

    def test_write_file_missing_dir(self, local_biome: LocalBiome):
        with pytest.raises(BiomeError):
            write_file(background(), local_biome, "nope/out.txt", io.BytesIO(b"x"))

    def test_write_file_missing_dir_leaves_nothing(self, local_biome: LocalBiome):
        with pytest.raises(BiomeError, match="write file"):
            local_biome.write_file(background(), "nope/out.txt", io.BytesIO(b"x"))
        package = Path(local_biome.dirs().package)
        assert not (package / "nope").exists()
        assert not list(package.glob(".yb-write-*"))

    def test_mkdir_all(self, local_biome: LocalBiome):
        mkdir_all(background(), local_biome, "a/b/c")
        mkdir_all(background(), local_biome, "a/b/c")
        assert (Path(local_biome.dirs().package) / "a" / "b" / "c").is_dir()

    def test_eval_symlinks(self, local_biome: LocalBiome):
        package = Path(local_biome.dirs().package)
        (package / "real").mkdir()
        (package / "link").symlink_to(package / "real")
        resolved = eval_symlinks(background(), local_biome, "link")
        assert resolved == os.path.realpath(package / "real")

    def test_eval_symlinks_missing(self, local_biome: LocalBiome):
        with pytest.raises(BiomeError):
            eval_symlinks(background(), local_biome, "missing")

    def test_exists(self, local_biome: LocalBiome):
        assert exists(background(), local_biome, ".")
        assert not exists(background(), local_biome, "missing")


class TestPaths:
    def test_join_and_clean(self, local_biome: LocalBiome):
        joined = local_biome.join_path("a", "", "b/../c")
        assert joined == os.path.join("a", "c")
        assert local_biome.clean_path(joined) == joined

    def test_clean_empty(self, local_biome: LocalBiome):
        assert local_biome.clean_path("") == "."

    def test_look_path(self, tmp_path: Path):
        tool = tmp_path / "tool"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
        assert look_path("tool", str(tmp_path)) == str(tool)
        assert look_path("./x/y", "") == "./x/y"
        with pytest.raises(BiomeError):
            look_path("tool", str(tmp_path / "elsewhere"))
