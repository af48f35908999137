"""
JVM build tools: Maven, Gradle and Ant.

All three ship platform-independent archives from Apache or Gradle
mirrors, so no OS/arch tables are involved.
"""

from __future__ import annotations

import logging

from yb.core.context import Context
from yb.core.models import BuildpackSpec, Environment
from yb.core.services.buildpack.extract import StripMode, extract
from yb.core.services.buildpack.installers.base import installed, major_version, tool_path
from yb.core.services.buildpack.system import Sys

logger = logging.getLogger(__name__)

MAVEN_URL = (
    "https://archive.apache.org/dist/maven/maven-{major}/{version}/binaries/apache-maven-{version}-bin.tar.gz"
)
GRADLE_URL = "https://services.gradle.org/distributions/gradle-{version}-bin.zip"
ANT_URL = "https://archive.apache.org/dist/ant/binaries/apache-ant-{version}-bin.zip"


def install_maven(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    major = major_version(spec.version)
    maven_dir = tool_path(sys, "maven", "apache-maven-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(maven_dir, "bin")])

    if installed(ctx, sys, maven_dir):
        logger.info("Maven v%s located in %s", spec.version, maven_dir)
        return env

    logger.info("Installing Maven v%s in %s", spec.version, maven_dir)
    url = MAVEN_URL.format(major=major, version=spec.version)
    extract(ctx, sys, maven_dir, url, StripMode.STRIP_TOP_DIRECTORY)
    return env


def install_gradle(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    """Install Gradle; its caches live in the biome's home, not the tools dir."""
    bio = sys.biome
    gradle_dir = tool_path(sys, "gradle", "gradle-" + spec.version)
    env = Environment(
        vars={"GRADLE_USER_HOME": bio.join_path(bio.dirs().home, ".gradle")},
        prepend_path=[bio.join_path(gradle_dir, "bin")],
    )

    if installed(ctx, sys, gradle_dir):
        logger.info("Gradle v%s located in %s", spec.version, gradle_dir)
        return env

    logger.info("Installing Gradle v%s in %s", spec.version, gradle_dir)
    extract(ctx, sys, gradle_dir, GRADLE_URL.format(version=spec.version), StripMode.STRIP_TOP_DIRECTORY)
    return env


def install_ant(ctx: Context, sys: Sys, spec: BuildpackSpec) -> Environment:
    ant_dir = tool_path(sys, "ant", "apache-ant-" + spec.version)
    env = Environment(prepend_path=[sys.biome.join_path(ant_dir, "bin")])

    if installed(ctx, sys, ant_dir):
        logger.info("Ant v%s located in %s", spec.version, ant_dir)
        return env

    logger.info("Installing Ant v%s in %s", spec.version, ant_dir)
    extract(ctx, sys, ant_dir, ANT_URL.format(version=spec.version), StripMode.STRIP_TOP_DIRECTORY)
    return env
