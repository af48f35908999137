"""
Tests for configuration loading — .yourbase.yml parsing, target order and data dirs.
"""

import textwrap
from pathlib import Path

import pytest

from yb.core.config import (
    PACKAGE_CONFIG_FILE,
    ConfigError,
    DataDirs,
    build_order,
    env_flag,
    find_package_file,
    load_package,
)
from yb.core.models import Descriptor


@pytest.fixture
def package_yml(tmp_path: Path) -> Path:
    """Create a .yourbase.yml with a few related targets."""
    content = textwrap.dedent("""\
        dependencies:
          build:
            - go:1.15.2
            - python:3.9.2
          containers:
            db:
              image: postgres:12
              port_wait_check:
                port: 5432

        build_targets:
          - name: default
            commands:
              - go build ./...
            build_after:
              - generate
          - name: generate
            commands:
              - go generate ./...
            environment:
              - GOFLAGS=-mod=vendor
          - name: lint
            host_only: true
            commands:
              - go vet ./...
    """)
    path = tmp_path / PACKAGE_CONFIG_FILE
    path.write_text(content)
    return path


# ── Discovery ───────────────────────────────────────────────────


class TestFindPackageFile:
    def test_in_start_dir(self, package_yml: Path):
        assert find_package_file(package_yml.parent) == package_yml.resolve()

    def test_walks_up(self, package_yml: Path):
        nested = package_yml.parent / "cmd" / "server"
        nested.mkdir(parents=True)
        assert find_package_file(nested) == package_yml.resolve()

    def test_not_found(self, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert find_package_file(empty) is None


# ── Loading ─────────────────────────────────────────────────────


class TestLoadPackage:
    def test_load(self, package_yml: Path):
        package = load_package(package_yml)
        assert package.path == str(package_yml.parent.resolve())
        assert [t.name for t in package.build_targets] == ["default", "generate", "lint"]
        assert [str(s) for s in package.dependencies.build_specs()] == ["go:1.15.2", "python:3.9.2"]

    def test_env_list_form(self, package_yml: Path):
        target = load_package(package_yml).target("generate")
        assert target.environment == {"GOFLAGS": "-mod=vendor"}

    def test_service_containers(self, package_yml: Path):
        package = load_package(package_yml)
        services = package.containers_for(package.target("default"))
        assert services["db"].image == "postgres:12"
        assert services["db"].port_check.port == 5432

    def test_host_only(self, package_yml: Path):
        assert load_package(package_yml).target("lint").host_only

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("")
        assert load_package(path).build_targets == []

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_package(tmp_path / PACKAGE_CONFIG_FILE)

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("build_targets: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_package(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_package(path)

    def test_invalid_schema(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("build_targets:\n  - commands: [make]\n")
        with pytest.raises(ConfigError, match="Invalid package configuration"):
            load_package(path)

    def test_invalid_buildpack(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("dependencies:\n  build: [go]\nbuild_targets:\n  - name: default\n")
        package = load_package(path)
        with pytest.raises(ValueError):
            package.dependencies.build_specs()

    def test_duplicate_targets(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("build_targets:\n  - name: a\n  - name: a\n  - name: b\n")
        with pytest.raises(ConfigError, match="Duplicate build targets.*a"):
            load_package(path)


# ── Build order ─────────────────────────────────────────────────


class TestBuildOrder:
    def test_dependencies_first(self, package_yml: Path):
        package = load_package(package_yml)
        assert [t.name for t in build_order(package, "default")] == ["generate", "default"]

    def test_no_dependencies(self, package_yml: Path):
        package = load_package(package_yml)
        assert [t.name for t in build_order(package, "lint")] == ["lint"]

    def test_shared_dependency_built_once(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text(textwrap.dedent("""\
            build_targets:
              - name: all
                build_after: [a, b]
              - name: a
                build_after: [base]
              - name: b
                build_after: [base]
              - name: base
        """))
        order = [t.name for t in build_order(load_package(path), "all")]
        assert order == ["base", "a", "b", "all"]

    def test_unknown_target(self, package_yml: Path):
        with pytest.raises(ConfigError, match="no such build target 'nope'"):
            build_order(load_package(package_yml), "nope")

    def test_unknown_dependency(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text("build_targets:\n  - name: a\n    build_after: [ghost]\n")
        with pytest.raises(ConfigError, match="builds after unknown target 'ghost'"):
            build_order(load_package(path), "a")

    def test_cycle(self, tmp_path: Path):
        path = tmp_path / PACKAGE_CONFIG_FILE
        path.write_text(textwrap.dedent("""\
            build_targets:
              - name: a
                build_after: [b]
              - name: b
                build_after: [a]
        """))
        with pytest.raises(ConfigError, match="cycle: a -> b -> a"):
            build_order(load_package(path), "a")


# ── Data directories ────────────────────────────────────────────


class TestDataDirs:
    def test_explicit_cache_dir(self, tmp_path: Path):
        dirs = DataDirs.from_env({"YB_CACHE_DIR": str(tmp_path)})
        assert dirs.cache == tmp_path
        assert dirs.downloads == tmp_path / "downloads"
        assert dirs.tools == tmp_path / "tools"
        assert dirs.workspaces == tmp_path / "workspaces"

    def test_xdg_cache_home(self, tmp_path: Path):
        dirs = DataDirs.from_env({"XDG_CACHE_HOME": str(tmp_path)})
        assert dirs.cache == tmp_path / "yb"

    def test_workspaces_override(self, tmp_path: Path):
        dirs = DataDirs.from_env({"YB_CACHE_DIR": str(tmp_path), "YB_WORKSPACES_ROOT": "/ws"})
        assert dirs.workspaces == Path("/ws")

    def test_build_home(self, tmp_path: Path):
        dirs = DataDirs.under(tmp_path)
        desc = Descriptor(os="linux", arch="x86_64")
        home = dirs.build_home("/src/app", "default", desc)
        assert home.is_dir()
        assert home.parts[-3:] == ("default", "linux", "x86_64")
        assert dirs.build_home("/src/app", "default", desc) == home
        assert dirs.build_home("/src/other", "default", desc) != home


class TestEnvFlag:
    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_true(self, value):
        assert env_flag("YB_NO_CONTAINER", {"YB_NO_CONTAINER": value})

    @pytest.mark.parametrize("value", ["", "0", "false", "nope"])
    def test_false(self, value):
        assert not env_flag("YB_NO_CONTAINER", {"YB_NO_CONTAINER": value})

    def test_unset(self):
        assert not env_flag("YB_NO_CONTAINER", {})
