"""
Decodes the GitHub releases payload into immutable Release records.
"""

import logging

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from mingw_dl.core.attributes import parse_asset_name
from mingw_dl.exceptions import DecodeError
from mingw_dl.models.release import Asset, Release

log = logging.getLogger(__name__)


class AssetPayload(BaseModel):
    """One entry of a release's `assets` array."""

    name: str = ""
    size: int = Field(0, ge=0)
    browser_download_url: str = ""


class ReleasePayload(BaseModel):
    """One release object as returned by the GitHub API."""

    tag_name: str = ""
    published_at: str | None = ""
    assets: list[AssetPayload] = Field(default_factory=list)


_RELEASES_ADAPTER = TypeAdapter(list[ReleasePayload])


def decode_releases(payload: bytes | str) -> tuple[Release, ...]:
    """
    Parses a releases payload.

    Releases without a tag and assets without a name are dropped. Any JSON or
    schema error fails the whole payload; there is no partial result.

    Raises:
        DecodeError: If the payload is not a valid list of release objects.
    """
    try:
        raw_releases = _RELEASES_ADAPTER.validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"Malformed releases payload: {e}") from e

    releases = []
    for raw in raw_releases:
        if not raw.tag_name:
            continue
        assets = tuple(
            Asset(
                name=a.name,
                size=a.size,
                url=a.browser_download_url,
                attributes=parse_asset_name(a.name),
            )
            for a in raw.assets
            if a.name
        )
        releases.append(
            Release(
                tag=raw.tag_name,
                published_at=raw.published_at or "",
                assets=assets,
            )
        )

    log.debug(f"Decoded {len(releases)} releases from payload.")
    return tuple(releases)
