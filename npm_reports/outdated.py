# npm_reports/outdated.py
"""
Schema model for the output of `npm outdated --json --long`.

The output carries no version marker. Fields that only some npm versions
write are optional rather than separate document shapes. Field meanings
follow https://docs.npmjs.com/cli/v7/commands/npm-outdated
"""

from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel

from .codecs import frozen_mapping


class PackageStatus(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True, extra="ignore")

    # maximum version satisfying the semver range in package.json
    # (the installed version when there is no such range)
    wanted: str
    # version tagged as latest in the registry
    latest: str
    # where in the physical tree the package is located
    location: Optional[str] = None
    # which package depends on this one; missing in older npm versions
    dependent: Optional[str] = None
    # dependency, devDependencies, peerDependencies or optionalDependencies
    package_type: str = Field(alias="type")
    # homepage from the packument; missing in older npm versions
    homepage: Optional[str] = None


PackageStatusMap = frozen_mapping(PackageStatus)


class FreshnessReport(RootModel[PackageStatusMap]):
    """Package status keyed by package name."""
    model_config = ConfigDict(frozen=True, strict=True)

    def __getitem__(self, name: str) -> PackageStatus:
        return self.root[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def items(self):
        return self.root.items()
