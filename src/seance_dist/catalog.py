"""Static catalog of supported targets, binaries, and package families."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .errors import ValidationError
from .models import Arch, BinarySpec, PackageDecl, PackageFormat, TargetSpec

# Toolchain identifiers exposed by the workspace flake as `.#cross-<id>`.
KNOWN_TOOLCHAINS = frozenset(
    {
        "x86_64-linux",
        "i686-linux",
        "aarch64-linux",
        "armv6l-linux",
        "x86_64-windows",
    }
)

BINARIES: Mapping[str, BinarySpec] = {
    "seance": BinarySpec(
        name="seance",
        crate="seance-app",
        description="Design and send HPGL jobs to vinyl cutters and laser engravers",
        launcher="Seance",
    ),
    "planchette": BinarySpec(
        name="planchette",
        crate="planchette",
        description="Print server bridging Seance jobs to the local print queue",
    ),
}


@dataclass(frozen=True, slots=True)
class FamilyConvention:
    """Conventions of the distribution family a package format belongs to."""

    name: str
    format: PackageFormat
    create_applications_dir: bool
    arch_names: Mapping[Arch, str] = field(default_factory=dict)
    # Install-time data directories a package of this family may ship files under.
    data_dirs: tuple[str, ...] = ("/usr/share",)

    def architecture(self, arch: Arch) -> str:
        try:
            return self.arch_names[arch]
        except KeyError:
            raise ValidationError(
                f"The {self.name} family has no architecture name for `{arch}`.",
                hint="Add the architecture to the family's arch_names mapping.",
                context={"family": self.name, "arch": arch},
            ) from None


FAMILIES: Mapping[PackageFormat, FamilyConvention] = {
    "deb": FamilyConvention(
        name="debian",
        format="deb",
        create_applications_dir=True,
        arch_names={"x86_64": "amd64", "aarch64": "arm64", "armv6l": "armhf"},
        data_dirs=("/usr/share",),
    ),
    "arch": FamilyConvention(
        name="arch",
        format="arch",
        create_applications_dir=False,
        arch_names={"x86_64": "x86_64", "aarch64": "aarch64", "armv6l": "armv6h"},
        data_dirs=("/usr/share",),
    ),
}

_PLANCHETTE_DEB = PackageDecl(
    name="planchette",
    format="deb",
    binaries=("planchette",),
    description=BINARIES["planchette"].description,
    depends=("cups",),
    section="net",
    skeleton="planchette-deb",
)

TARGETS: tuple[TargetSpec, ...] = (
    TargetSpec(
        os="linux",
        arch="x86_64",
        toolchain="x86_64-linux",
        binaries=("seance", "planchette"),
        packages=(
            PackageDecl(
                name="seance",
                format="deb",
                binaries=("seance",),
                description=BINARIES["seance"].description,
                depends=("libgl1", "libxkbcommon0"),
                section="graphics",
            ),
            _PLANCHETTE_DEB,
            PackageDecl(
                name="seance",
                format="arch",
                binaries=("seance",),
                description=BINARIES["seance"].description,
                depends=("libglvnd", "libxkbcommon"),
            ),
        ),
    ),
    TargetSpec(
        os="linux",
        arch="aarch64",
        toolchain="aarch64-linux",
        binaries=("planchette",),
        packages=(_PLANCHETTE_DEB,),
    ),
    TargetSpec(
        os="linux",
        arch="armv6l",
        toolchain="armv6l-linux",
        binaries=("planchette",),
        packages=(_PLANCHETTE_DEB,),
    ),
    TargetSpec(
        os="windows",
        arch="x86_64",
        toolchain="x86_64-windows",
        binaries=("seance",),
        impure=True,
        build_env=(("NIXPKGS_ALLOW_UNSUPPORTED_SYSTEM", "1"),),
    ),
)


def targets() -> tuple[TargetSpec, ...]:
    """Return every supported target in catalog order."""
    return TARGETS


def binary(name: str) -> BinarySpec:
    try:
        return BINARIES[name]
    except KeyError:
        raise ValidationError(
            f"Unknown binary `{name}`.",
            hint=f"Known binaries: {', '.join(sorted(BINARIES))}.",
            context={"binary": name},
        ) from None


def family(package_format: PackageFormat) -> FamilyConvention:
    try:
        return FAMILIES[package_format]
    except KeyError:
        raise ValidationError(
            f"No family convention for package format `{package_format}`.",
            context={"format": package_format},
        ) from None


def select_targets(
    catalog: Iterable[TargetSpec],
    selectors: Iterable[str] = (),
) -> tuple[TargetSpec, ...]:
    """Filter *catalog* down to the `os/arch` keys in *selectors*, keeping catalog order."""
    available = tuple(catalog)
    wanted = tuple(dict.fromkeys(selectors))
    if not wanted:
        return available
    known = {target.key for target in available}
    unknown = [key for key in wanted if key not in known]
    if unknown:
        raise ValidationError(
            f"Unknown target selector(s): {', '.join(unknown)}.",
            hint=f"Known targets: {', '.join(sorted(known))}.",
            context={"operation": "select_targets"},
        )
    return tuple(target for target in available if target.key in wanted)


def validate_catalog(catalog: Iterable[TargetSpec]) -> None:
    seen: set[str] = set()
    for target in catalog:
        context = {"operation": "validate_catalog", "target": target.key}
        if target.key in seen:
            raise ValidationError("Duplicate target in catalog.", context=context)
        seen.add(target.key)
        if target.toolchain not in KNOWN_TOOLCHAINS:
            raise ValidationError(
                f"Toolchain `{target.toolchain}` is not provided by the build flake.",
                hint=f"Known toolchains: {', '.join(sorted(KNOWN_TOOLCHAINS))}.",
                context=context,
            )
        if not target.binaries:
            raise ValidationError("Target declares no binaries.", context=context)
        for name in target.binaries:
            binary(name)
        for package in target.packages:
            family(package.format)
            missing = [name for name in package.binaries if name not in target.binaries]
            if missing:
                raise ValidationError(
                    f"Package `{package.name}` ({package.format}) references binaries "
                    f"not built for this target: {', '.join(missing)}.",
                    context=context,
                )
