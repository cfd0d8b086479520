import hashlib
import stat
from pathlib import Path

import pytest

from seance_dist.assemble import assemble, canonical_path
from seance_dist.catalog import targets
from seance_dist.errors import AssemblyConflict
from seance_dist.models import BuiltArtifact, TargetSpec


def _target(key: str) -> TargetSpec:
    return next(target for target in targets() if target.key == key)


def _artifact(tmp_path: Path, name: str, payload: bytes) -> BuiltArtifact:
    path = tmp_path / "store" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    return BuiltArtifact(path=path, sha256=hashlib.sha256(payload).hexdigest())


def test_canonical_paths() -> None:
    assert canonical_path(_target("linux/x86_64"), "seance").as_posix() == "linux/x86_64/seance"
    assert canonical_path(_target("windows/x86_64"), "seance").as_posix() == "windows/x86_64/seance.exe"


def test_assemble_places_artifacts_in_canonical_layout(tmp_path: Path) -> None:
    x86, armv6 = _target("linux/x86_64"), _target("linux/armv6l")
    artifacts = {
        "linux/x86_64": {
            "seance": _artifact(tmp_path, "seance-app", b"seance"),
            "planchette": _artifact(tmp_path, "planchette-x86", b"planchette-x86"),
        },
        "linux/armv6l": {"planchette": _artifact(tmp_path, "planchette-arm", b"planchette-arm")},
    }
    root = tmp_path / "seance-distribution"

    assembly = assemble(root, artifacts, [x86, armv6])

    assert assembly.failures == ()
    assert [str(e.relative_path) for e in assembly.tree.entries] == [
        "linux/x86_64/seance",
        "linux/x86_64/planchette",
        "linux/armv6l/planchette",
    ]
    placed = root / "linux" / "armv6l" / "planchette"
    assert placed.read_bytes() == b"planchette-arm"
    assert stat.S_IMODE(placed.stat().st_mode) == 0o755
    assert assembly.tree.path_for("linux/armv6l", "planchette") == placed


def test_assemble_is_idempotent(tmp_path: Path) -> None:
    armv6 = _target("linux/armv6l")
    artifacts = {"linux/armv6l": {"planchette": _artifact(tmp_path, "planchette", b"bytes")}}
    root = tmp_path / "dist"

    first = assemble(root, artifacts, [armv6])
    placed = root / "linux" / "armv6l" / "planchette"
    mtime = placed.stat().st_mtime_ns
    second = assemble(root, artifacts, [armv6])

    assert first.tree == second.tree
    assert second.failures == ()
    assert placed.stat().st_mtime_ns == mtime


def test_assemble_refuses_to_overwrite_different_bytes(tmp_path: Path) -> None:
    x86, armv6 = _target("linux/x86_64"), _target("linux/armv6l")
    root = tmp_path / "dist"
    stale = root / "linux" / "armv6l" / "planchette"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"stale build")
    artifacts = {
        "linux/armv6l": {"planchette": _artifact(tmp_path, "planchette", b"fresh build")},
        "linux/x86_64": {
            "seance": _artifact(tmp_path, "seance", b"seance"),
            "planchette": _artifact(tmp_path, "planchette-x86", b"planchette"),
        },
    }

    assembly = assemble(root, artifacts, [x86, armv6])

    assert stale.read_bytes() == b"stale build"
    assert [(f.target, f.binary, f.error.code) for f in assembly.failures] == [
        ("linux/armv6l", "planchette", "E_ASSEMBLY_CONFLICT"),
    ]
    assert assembly.tree.has("linux/x86_64", "seance")
    assert not assembly.tree.has("linux/armv6l", "planchette")


def test_assemble_reverifies_checksum(tmp_path: Path) -> None:
    armv6 = _target("linux/armv6l")
    artifact = _artifact(tmp_path, "planchette", b"original")
    artifact.path.write_bytes(b"tampered")

    assembly = assemble(tmp_path / "dist", {"linux/armv6l": {"planchette": artifact}}, [armv6])

    assert assembly.failures[0].error.code == "E_ARTIFACT_MISSING"
    assert not (tmp_path / "dist" / "linux" / "armv6l" / "planchette").exists()


def test_assemble_reports_vanished_artifact(tmp_path: Path) -> None:
    armv6 = _target("linux/armv6l")
    missing = BuiltArtifact(path=tmp_path / "gone", sha256="0" * 64)

    assembly = assemble(tmp_path / "dist", {"linux/armv6l": {"planchette": missing}}, [armv6])

    assert assembly.failed_targets() == ("linux/armv6l",)
    assert assembly.failures[0].error.code == "E_ARTIFACT_MISSING"


def test_tree_manifest_lists_digests(tmp_path: Path) -> None:
    armv6 = _target("linux/armv6l")
    artifact = _artifact(tmp_path, "planchette", b"bytes")

    tree = assemble(tmp_path / "dist", {"linux/armv6l": {"planchette": artifact}}, [armv6]).tree

    assert tree.to_manifest() == {
        "linux/armv6l/planchette": {
            "target": "linux/armv6l",
            "binary": "planchette",
            "sha256": artifact.sha256,
        }
    }


def test_assemble_rejects_root_that_is_a_file(tmp_path: Path) -> None:
    armv6 = _target("linux/armv6l")
    artifact = _artifact(tmp_path, "planchette", b"bytes")
    (tmp_path / "dist").write_bytes(b"not a directory")

    with pytest.raises(AssemblyConflict, match="distribution root"):
        assemble(tmp_path / "dist", {"linux/armv6l": {"planchette": artifact}}, [armv6])
