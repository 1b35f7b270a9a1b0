"""
Application state owned by the pipeline orchestrator.
"""

from dataclasses import dataclass, field

from .attributes import FilterSelection
from .release import Release


@dataclass
class AppState:
    """
    Holds the loaded releases and the active filter selection.

    `releases` is only ever replaced as a whole; `filters` survives refreshes.
    """

    releases: tuple[Release, ...] = ()
    filters: FilterSelection = field(default_factory=FilterSelection)

    def replace_releases(self, releases: tuple[Release, ...]) -> None:
        self.releases = tuple(releases)

    def find_release(self, tag: str | None = None) -> Release | None:
        """Returns the release with `tag`, or the newest one when no tag is given."""
        if not self.releases:
            return None
        if tag is None:
            return self.releases[0]
        for release in self.releases:
            if release.tag == tag:
                return release
        return None
