"""
Immutable release and asset records built from the metadata payload.
"""

from dataclasses import dataclass, field

from .attributes import AttributeSet


@dataclass(frozen=True)
class Asset:
    """One downloadable file attached to a release."""

    name: str
    size: int
    url: str
    attributes: AttributeSet = field(default_factory=AttributeSet)


@dataclass(frozen=True)
class Release:
    """A tagged, timestamped group of assets, kept in source order."""

    tag: str
    published_at: str
    assets: tuple[Asset, ...] = ()

    def find_asset(self, name: str) -> Asset | None:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None
