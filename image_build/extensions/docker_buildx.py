"""Build extension: image builds through ``docker buildx``."""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from targetkit.errors import TargetFailure

from image_build.framework.runtime import platform_from_arch

DEFAULT_BUILDER_NAME = "base-images-builder"
IMAGE_TAR_OUTPUT = "image_tar"


def qualify_tag(image_name: str, tag: str) -> str:
    """Bare tags are appended to the image name; full references pass through."""

    if "/" in tag or ":" in tag:
        return tag
    return f"{image_name}:{tag}"


def human_size(size: int) -> str:
    if size <= 0:
        return "unknown"
    if size > 1024 * 1024:
        return f"{size // (1024 * 1024)}MB"
    if size > 1024:
        return f"{size // 1024}KB"
    return f"{size}B"


class DockerBuildxExtension:
    FLAGS = {
        "--load": "Load image to Docker after build (single platform only)",
        "--push": "Push image to registry",
        "--sbom": "Generate SBOM attestation",
        "--provenance": "Generate provenance attestation",
    }

    def __init__(self, ctx: Any):
        self._ctx = ctx
        self.builder_name = os.environ.get("BUILDX_BUILDER_NAME", DEFAULT_BUILDER_NAME)

    def check(self) -> None:
        if shutil.which("docker") is None:
            raise TargetFailure("Docker is not installed")
        if not self._ctx.run_command(["docker", "buildx", "version"]).ok:
            raise TargetFailure("Docker Buildx is not available (install with: docker buildx install)")

    def ensure_builder(self) -> str:
        self.check()
        name = self.builder_name
        if self._ctx.run_command(["docker", "buildx", "inspect", name]).ok:
            self._ctx.run_command(["docker", "buildx", "use", name])
            self._ctx.logger.debug("Using existing builder: %s", name)
            return name

        self._ctx.logger.info("Creating buildx builder: %s", name)
        self._ctx.check_command(
            [
                "docker", "buildx", "create",
                "--name", name,
                "--driver", "docker-container",
                "--driver-opt", "image=moby/buildkit:latest",
                "--use",
            ]
        )
        self._ctx.check_command(["docker", "buildx", "inspect", "--bootstrap", name])
        self._ctx.logger.info("Builder created: %s", name)
        return name

    def default_platform(self) -> str:
        return platform_from_arch(self._ctx.build_arch())

    def _validate_dockerfile(self, dockerfile: str | os.PathLike[str]) -> Path:
        path = Path(dockerfile)
        if not path.is_file():
            raise TargetFailure(f"Dockerfile not found: {path}")
        return path

    def _attestation_args(self) -> list[str]:
        args: list[str] = []
        if self._ctx.is_flag_set("sbom"):
            args.append("--sbom=true")
        if self._ctx.is_flag_set("provenance"):
            args.append("--provenance=true")
        return args

    def build_command(
        self,
        image_name: str,
        dockerfile: str | os.PathLike[str],
        context: str | os.PathLike[str],
        platform: str,
        tags: Sequence[str],
        build_args: Sequence[str] = (),
        *,
        cache: bool = True,
    ) -> list[str]:
        cmd = ["docker", "buildx", "build", "--platform", platform, "--file", str(dockerfile)]
        for tag in tags:
            cmd.extend(["--tag", qualify_tag(image_name, tag)])
        for arg in build_args:
            cmd.extend(["--build-arg", arg])
        if cache:
            scope = f"{Path(image_name).name}-{platform.rsplit('/', 1)[-1]}"
            cmd.extend(["--cache-from", f"type=gha,scope={scope}"])
            cmd.extend(["--cache-to", f"type=gha,mode=max,scope={scope}"])
        cmd.extend(self._attestation_args())
        if self._ctx.is_flag_set("push"):
            cmd.append("--push")
        elif self._ctx.is_flag_set("load"):
            cmd.append("--load")
        cmd.append(str(context))
        return cmd

    def build(
        self,
        image_name: str,
        dockerfile: str | os.PathLike[str],
        context: str | os.PathLike[str],
        platform: str,
        tags: Sequence[str],
        build_args: Sequence[str] = (),
        *,
        cache: bool = True,
    ) -> None:
        self._validate_dockerfile(dockerfile)
        self._ctx.ensure_build_dir()
        cmd = self.build_command(
            image_name, dockerfile, context, platform, tags, build_args, cache=cache
        )
        self._ctx.logger.info("Building %s for %s...", image_name, platform)
        result = self._ctx.run_command(cmd)
        for line in result.output.splitlines():
            self._ctx.logger.debug(line)
        if not result.ok:
            raise TargetFailure(f"Build failed for {image_name}")
        self._ctx.logger.info("Build complete: %s", image_name)

    def build_multi_arch(
        self,
        image_name: str,
        dockerfile: str | os.PathLike[str],
        context: str | os.PathLike[str],
        platforms: Sequence[str],
        tags: Sequence[str],
    ) -> None:
        self._validate_dockerfile(dockerfile)
        platform_csv = ",".join(platforms)
        cmd = ["docker", "buildx", "build", "--platform", platform_csv, "--file", str(dockerfile)]
        for tag in tags:
            cmd.extend(["--tag", qualify_tag(image_name, tag)])
        cmd.extend(self._attestation_args())
        cmd.extend(["--push", str(context)])
        self._ctx.logger.info("Building %s for %s...", image_name, platform_csv)
        if not self._ctx.run_command(cmd).ok:
            raise TargetFailure(f"Multi-arch build failed for {image_name}")
        self._ctx.logger.info("Multi-arch build complete: %s", image_name)

    def export_tar(
        self,
        image_name: str,
        dockerfile: str | os.PathLike[str],
        context: str | os.PathLike[str],
        platform: str,
        output_path: str | os.PathLike[str] | None = None,
    ) -> Path:
        """Build into a docker-loadable tar; the test extensions pick it up from outputs."""

        self._validate_dockerfile(dockerfile)
        build_dir = self._ctx.ensure_build_dir()
        target = Path(output_path) if output_path else build_dir / f"{Path(image_name).name}.tar"
        target.parent.mkdir(parents=True, exist_ok=True)

        self._ctx.logger.info("Building and exporting to tar: %s...", target)
        result = self._ctx.run_command(
            [
                "docker", "buildx", "build",
                "--platform", platform,
                "--file", str(dockerfile),
                "--tag", f"{image_name}:test",
                "--output", f"type=docker,dest={target}",
                str(context),
            ]
        )
        for line in result.output.splitlines():
            self._ctx.logger.debug(line)
        if not result.ok:
            raise TargetFailure(f"Export failed for {image_name}")
        if not target.is_file():
            raise TargetFailure(f"Export file not created: {target}")

        self._ctx.logger.info("Exported: %s (%s)", target, human_size(target.stat().st_size))
        self._ctx.outputs[IMAGE_TAR_OUTPUT] = str(target)
        return target

    def image_digest(self, image_ref: str) -> str | None:
        result = self._ctx.run_command(
            ["docker", "buildx", "imagetools", "inspect", image_ref, "--format", "{{json .Manifest.Digest}}"]
        )
        digest = result.stdout.strip().strip('"')
        return digest if result.ok and digest else None


EXTENSION = DockerBuildxExtension
