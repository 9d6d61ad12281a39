"""distroless-static: Google distroless static image (glibc-based).

    image-build run images/base/distroless-static build -Parch=amd64 --load
    image-build run images/base/distroless-static clean build test --load
"""

from datetime import date

from targetkit.errors import TargetFailure

IMAGE_NAME = "distroless-static"


def register(ctx):
    registry = ctx.cfg.registry or "ghcr.io/example/base-images"
    image_ref = f"{registry}/{IMAGE_NAME}"
    dockerfile = ctx.layout.module_dir / "Dockerfile"

    @ctx.target("build")
    def build():
        """Build the image (exported as a tar when loading or testing)"""
        buildx = ctx.load_extension("docker-buildx")
        arch = ctx.validate_arch()
        platform = buildx.default_platform()
        tags = [f"latest-{arch}", f"{date.today():%Y%m%d}-{arch}"]

        buildx.ensure_builder()
        ctx.ensure_build_dir()
        buildx.build(image_ref, dockerfile, ctx.layout.module_dir, platform, tags)

        if ctx.is_flag_set("load") or ctx.is_requested("test"):
            buildx.export_tar(
                image_ref,
                dockerfile,
                ctx.layout.module_dir,
                platform,
                ctx.layout.build_dir / f"{IMAGE_NAME}-{arch}.tar",
            )
        ctx.logger.info("Built %s for %s", IMAGE_NAME, platform)

    @ctx.target("scan")
    def scan():
        """Scan the image for HIGH/CRITICAL vulnerabilities"""
        trivy = ctx.load_extension("trivy")
        ref = f"{image_ref}:latest-{ctx.build_arch()}"
        trivy.scan_image(ref)
        report = trivy.generate_report(ref, ctx.layout.build_dir / "trivy-report.json")
        ctx.save_artifact(report)
        trivy.check_critical(ref)

    @ctx.target("sign")
    def sign():
        """Sign the pushed image by digest"""
        digest = ctx.load_extension("docker-buildx").image_digest(f"{image_ref}:latest-{ctx.build_arch()}")
        if not digest:
            raise TargetFailure("Cannot sign: image digest not found")
        ctx.load_extension("cosign").sign_digest(f"{image_ref}@{digest}")

    @ctx.target("verify", depends_on=("sign",))
    def verify():
        """Verify the signature and SBOM attestation"""
        cosign = ctx.load_extension("cosign")
        ref = f"{image_ref}:latest-{ctx.build_arch()}"
        cosign.verify(ref, identity_regexp=ctx.get_param("signer_identity", ".*"))
        if ctx.is_flag_set("sbom"):
            cosign.verify_attestation(ref, "spdxjson")

    @ctx.target("release")
    def release():
        """Build and push amd64 and arm64 in one manifest"""
        buildx = ctx.load_extension("docker-buildx")
        buildx.ensure_builder()
        buildx.build_multi_arch(
            image_ref,
            dockerfile,
            ctx.layout.module_dir,
            ["linux/amd64", "linux/arm64"],
            ["latest", f"{date.today():%Y%m%d}"],
        )

    @ctx.target("info")
    def info():
        """Show image information"""
        ctx.logger.info("Registry: %s", registry)
        ctx.logger.info("Image: %s", IMAGE_NAME)
        ctx.logger.info("Architecture: %s", ctx.build_arch())

    ctx.load_extension("docker-buildx")
