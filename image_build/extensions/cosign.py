"""Build extension: image signing with cosign."""

from __future__ import annotations

import os
import shutil
from typing import Any

from targetkit.errors import TargetFailure

GITHUB_OIDC_ISSUER = "https://token.actions.githubusercontent.com"


class CosignExtension:
    FLAGS = {"--keyless": "Use keyless signing (default in CI)"}

    def __init__(self, ctx: Any):
        self._ctx = ctx

    def check(self) -> None:
        if shutil.which("cosign") is None:
            raise TargetFailure(
                "Cosign is not installed "
                "(see https://docs.sigstore.dev/cosign/system_config/installation/)"
            )

    def version(self) -> str:
        result = self._ctx.run_command(["cosign", "version"])
        lines = result.stdout.strip().splitlines()
        return lines[0] if result.ok and lines else "unknown"

    def sign(self, image_ref: str, key_file: str | None = None) -> None:
        self.check()
        cmd = ["cosign", "sign", "--yes"]
        if key_file and not self._ctx.is_flag_set("keyless"):
            cmd.extend(["--key", key_file])
        cmd.append(image_ref)

        self._ctx.logger.info("Signing image: %s...", image_ref)
        env = dict(os.environ, COSIGN_YES="true")
        if not self._ctx.run_command(cmd, env=env).ok:
            raise TargetFailure(f"Failed to sign image: {image_ref}")
        self._ctx.logger.info("Image signed: %s", image_ref)

    def sign_digest(self, image_with_digest: str, key_file: str | None = None) -> None:
        if "@sha256:" not in image_with_digest:
            raise TargetFailure(f"Expected an image reference pinned by digest: {image_with_digest}")
        self.sign(image_with_digest, key_file)

    def verify(self, image_ref: str, identity_regexp: str, issuer: str = GITHUB_OIDC_ISSUER) -> None:
        self.check()
        self._ctx.logger.info("Verifying signature: %s...", image_ref)
        result = self._ctx.run_command(
            [
                "cosign", "verify",
                f"--certificate-identity-regexp={identity_regexp}",
                f"--certificate-oidc-issuer={issuer}",
                image_ref,
            ]
        )
        if not result.ok:
            raise TargetFailure(f"Signature verification failed: {image_ref}")
        self._ctx.logger.info("Signature verified: %s", image_ref)

    def verify_attestation(
        self,
        image_ref: str,
        attest_type: str,
        identity_regexp: str = ".*",
        issuer: str = GITHUB_OIDC_ISSUER,
    ) -> None:
        self.check()
        self._ctx.logger.info("Verifying %s attestation: %s...", attest_type, image_ref)
        result = self._ctx.run_command(
            [
                "cosign", "verify-attestation",
                "--type", attest_type,
                f"--certificate-identity-regexp={identity_regexp}",
                f"--certificate-oidc-issuer={issuer}",
                image_ref,
            ]
        )
        if not result.ok:
            raise TargetFailure(f"Attestation verification failed: {attest_type}")
        self._ctx.logger.info("Attestation verified: %s", attest_type)


EXTENSION = CosignExtension
