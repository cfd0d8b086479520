from pathlib import Path, PurePosixPath

from seance_dist.catalog import FAMILIES
from seance_dist.desktop import conforming, resolve
from seance_dist.models import EnvironmentContext


def test_environment_context_reads_xdg_data_dirs() -> None:
    env = EnvironmentContext.from_environ({"XDG_DATA_DIRS": "/usr/local/share:/usr/share"})
    assert env.present
    assert env.data_dirs == ("/usr/local/share", "/usr/share")


def test_environment_context_treats_unset_and_empty_as_absent() -> None:
    assert EnvironmentContext.from_environ({}).present is False
    assert EnvironmentContext.from_environ({"XDG_DATA_DIRS": "  "}).present is False


def test_absent_data_dirs_skip_without_default(tmp_path: Path) -> None:
    action = resolve(EnvironmentContext(data_dirs=None), FAMILIES["deb"], staging_root=tmp_path)

    assert not action.placed
    assert "XDG_DATA_DIRS" in action.reason
    assert list(tmp_path.iterdir()) == []


def test_first_conforming_directory_is_created_once_when_permitted(tmp_path: Path) -> None:
    env = EnvironmentContext(data_dirs=("relative/share", "/usr/share", "/usr/local/share"))

    first = resolve(env, FAMILIES["deb"], staging_root=tmp_path)
    second = resolve(env, FAMILIES["deb"], staging_root=tmp_path)

    assert first.placed and first.created
    assert first.path == PurePosixPath("/usr/share/applications")
    assert (tmp_path / "usr" / "share" / "applications").is_dir()
    assert second.placed and not second.created
    assert second.path == first.path
    assert not (tmp_path / "usr" / "local").exists()


def test_family_without_auto_creation_uses_existing_directory(tmp_path: Path) -> None:
    (tmp_path / "usr" / "share" / "applications").mkdir(parents=True)
    env = EnvironmentContext(data_dirs=("/usr/local/share", "/usr/share"))

    action = resolve(env, FAMILIES["arch"], staging_root=tmp_path)

    assert action.placed
    assert action.path == PurePosixPath("/usr/share/applications")
    assert action.created is False
    assert not (tmp_path / "usr" / "local").exists()


def test_family_without_auto_creation_skips_when_nothing_is_staged(tmp_path: Path) -> None:
    env = EnvironmentContext(data_dirs=("/usr/share",))

    action = resolve(env, FAMILIES["arch"], staging_root=tmp_path)

    assert not action.placed
    assert "arch" in action.reason
    assert list(tmp_path.iterdir()) == []


def test_only_family_data_directories_conform() -> None:
    permitted = FAMILIES["deb"].data_dirs
    assert conforming("/usr/share", permitted) == PurePosixPath("/usr/share")
    assert conforming("/usr/share/", permitted) == PurePosixPath("/usr/share")
    assert conforming("usr/share", permitted) is None
    assert conforming("/usr/../usr/share", permitted) is None
    assert conforming("/usr/local/share", permitted) is None
    assert conforming("/nix/store/abc-gtk3-3.24/share", permitted) is None
    assert conforming("/", permitted) is None


def test_host_specific_data_dirs_never_become_package_paths(tmp_path: Path) -> None:
    env = EnvironmentContext(
        data_dirs=("/nix/store/abc-gtk3-3.24/share", "/usr/local/share", "/usr/share")
    )

    action = resolve(env, FAMILIES["deb"], staging_root=tmp_path)

    assert action.path == PurePosixPath("/usr/share/applications")
    assert not (tmp_path / "nix").exists()
    assert not (tmp_path / "usr" / "local").exists()


def test_only_host_specific_data_dirs_skip(tmp_path: Path) -> None:
    env = EnvironmentContext(data_dirs=("/nix/store/abc-gtk3-3.24/share", "/usr/local/share"))

    action = resolve(env, FAMILIES["deb"], staging_root=tmp_path)

    assert not action.placed
    assert "/usr/share" in action.reason
    assert list(tmp_path.iterdir()) == []
