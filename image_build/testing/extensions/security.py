"""Test extension: hardening checks against the built image.

Uses the file's ``docker`` extension instance, so ``ensure_image`` runs once
per test file no matter which extension asks first.
"""

from __future__ import annotations

from typing import Any

ROOT_USERS = frozenset({"", "root", "0", "0:0"})
SHELL_PATHS: tuple[str, ...] = ("/bin/sh", "/bin/bash", "/bin/ash", "/bin/zsh")
PACKAGE_MANAGERS: tuple[str, ...] = ("apt-get", "apt", "yum", "dnf", "rpm", "apk", "pacman", "zypper")
OCI_REQUIRED_LABELS: tuple[str, ...] = (
    "org.opencontainers.image.title",
    "org.opencontainers.image.description",
    "org.opencontainers.image.source",
)
MINIMAL_IMAGE_MB = 50


class SecurityTestExtension:
    FLAGS = {}

    def __init__(self, ctx: Any):
        self._ctx = ctx
        self.docker = ctx.load_extension("docker")

    def _image(self) -> str:
        return self.docker.ensure_image()

    def check_non_root_user(self) -> str:
        self._image()
        user = self.docker.user().strip()
        if user in ROOT_USERS:
            raise AssertionError(f"Container should run as non-root (user: {user or 'empty'})")
        return user

    def check_user_id(self, expected_uid: str | int) -> None:
        self._image()
        uid = self.docker.user().split(":", 1)[0]
        if uid != str(expected_uid):
            raise AssertionError(f"Container should run as UID {expected_uid} (actual: {uid})")

    def check_no_shell(self) -> None:
        self._image()
        for shell in SHELL_PATHS:
            if self.docker.run("-c", "exit 0", entrypoint=shell).ok:
                raise AssertionError(f"Container should have no shell (found: {shell})")

    def check_read_only(self) -> None:
        self._image()
        if not self.docker.can_create("--read-only"):
            raise AssertionError("Container should work with read-only filesystem")

    def check_no_capabilities(self) -> None:
        self._image()
        if not self.docker.can_create("--cap-drop=ALL"):
            raise AssertionError("Container should work with --cap-drop=ALL")

    def check_no_package_managers(self) -> None:
        self._image()
        for manager in PACKAGE_MANAGERS:
            if self.docker.run("--version", entrypoint=manager).ok:
                raise AssertionError(f"Container should have no package managers (found: {manager})")

    def check_size_under(self, max_mb: int = MINIMAL_IMAGE_MB) -> int:
        self._image()
        size_mb = self.docker.size_bytes() // (1024 * 1024)
        if size_mb >= max_mb:
            raise AssertionError(f"Image size should be under {max_mb}MB ({size_mb}MB >= {max_mb}MB)")
        return size_mb

    def check_oci_labels(self, required: tuple[str, ...] = OCI_REQUIRED_LABELS) -> dict[str, str]:
        self._image()
        labels = self.docker.labels()
        missing = [name for name in required if not labels.get(name)]
        if missing:
            raise AssertionError(f"Image should have required OCI labels (missing: {' '.join(missing)})")
        return labels

    def check_label_value(self, name: str, expected: str) -> None:
        self._image()
        actual = self.docker.label(name)
        if actual != expected:
            raise AssertionError(f"Label {name} should equal {expected} (actual: {actual!r})")


EXTENSION = SecurityTestExtension
