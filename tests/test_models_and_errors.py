from pathlib import Path, PurePosixPath

from seance_dist.catalog import binary, targets
from seance_dist.errors import (
    ArtifactMissing,
    AssemblyConflict,
    BuildFailed,
    BuildSkipped,
    ConfigError,
    ErrorCode,
    ExternalToolUnavailable,
    PackagingFailed,
    ValidationError,
)
from seance_dist.models import BuildResult, DesktopAction, DriverState, TargetSpec


def test_binary_names_follow_operating_system() -> None:
    seance = binary("seance")
    assert seance.built_name("linux") == "seance-app"
    assert seance.built_name("windows") == "seance-app.exe"
    assert seance.dist_name("linux") == "seance"
    assert seance.dist_name("windows") == "seance.exe"


def test_target_key_slug_and_formats() -> None:
    target = next(t for t in targets() if t.key == "linux/x86_64")
    assert target.slug == "linux-x86_64"
    assert target.formats == ("deb", "arch")


def test_build_result_distinguishes_invocation_errors() -> None:
    target = TargetSpec(os="linux", arch="armv6l", toolchain="armv6l-linux", binaries=("planchette",))
    ok = BuildResult.success(target, "planchette", path=Path("/nix/store/x"), sha256="a" * 64)
    launch = BuildResult.failure(target, "planchette", ExternalToolUnavailable("no nix"))
    malformed = BuildResult.failure(target, "planchette", ValidationError("bad toolchain"))
    failed = BuildResult.failure(target, "planchette", BuildFailed("compile error"))

    assert ok.ok and not ok.invocation_error
    assert launch.invocation_error
    assert malformed.invocation_error
    assert not failed.ok and not failed.invocation_error
    assert failed.diagnostic == "compile error"


def test_desktop_action_constructors() -> None:
    skip = DesktopAction.skip("XDG_DATA_DIRS is not set")
    assert not skip.placed
    assert skip.path is None
    assert DesktopAction.place(PurePosixPath("/usr/share/applications")).placed


def test_driver_states_are_ordered() -> None:
    assert list(DriverState)[0] is DriverState.INIT
    assert list(DriverState)[-1] is DriverState.DONE


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        ConfigError("bad config"),
        ExternalToolUnavailable("no tool"),
        BuildFailed("build failed"),
        BuildSkipped("skipped"),
        ArtifactMissing("missing"),
        AssemblyConflict("conflict"),
        PackagingFailed("packaging failed"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.CONFIG.value,
        ErrorCode.EXTERNAL_TOOL_UNAVAILABLE.value,
        ErrorCode.BUILD_FAILED.value,
        ErrorCode.BUILD_SKIPPED.value,
        ErrorCode.ARTIFACT_MISSING.value,
        ErrorCode.ASSEMBLY_CONFLICT.value,
        ErrorCode.PACKAGING_FAILED.value,
    ]


def test_error_renders_hint_and_context() -> None:
    error = BuildFailed(
        "nix build failed",
        hint="Run the command by hand.",
        context={"target": "linux/armv6l", "stderr": ""},
    )

    assert error.message == "nix build failed"
    assert str(error) == "nix build failed\nHint: Run the command by hand.\n  target: linux/armv6l"
    assert error.to_dict() == {
        "code": "E_BUILD_FAILED",
        "message": "nix build failed",
        "context": {"target": "linux/armv6l", "stderr": ""},
        "hint": "Run the command by hand.",
    }
