"""
Filtering of a release's assets by their parsed build attributes.
"""

from collections.abc import Sequence
from enum import Enum

from mingw_dl.models.attributes import AttributeField, FilterSelection
from mingw_dl.models.release import Asset


class FilterEngine:
    """
    Holds the current FilterSelection and produces filtered views of asset lists.

    An asset matches when every constrained field equals the asset's parsed
    value. The filtered view is a tuple of indices into the original list, in
    the original order; it is recomputed on every call and never patched.
    """

    def __init__(self, selection: FilterSelection | None = None):
        self._selection = selection if selection is not None else FilterSelection()

    @property
    def selection(self) -> FilterSelection:
        return self._selection

    def set_field(self, field: AttributeField, value: Enum | None) -> None:
        """Constrains one field, or clears the constraint when `value` is None."""
        if value is not None and not isinstance(value, field.enum_type):
            raise TypeError(
                f"{field.value} expects {field.enum_type.__name__}, "
                f"got {type(value).__name__}"
            )
        setattr(self._selection, field.value, value)

    def reset(self) -> None:
        """Clears every constraint in place."""
        for field in AttributeField:
            setattr(self._selection, field.value, None)

    def matches(self, asset: Asset) -> bool:
        for field in AttributeField:
            wanted = self._selection.get(field)
            if wanted is not None and wanted != asset.attributes.get(field):
                return False
        return True

    def apply(self, assets: Sequence[Asset]) -> tuple[int, ...]:
        """Returns the indices of the matching assets, preserving order."""
        return tuple(i for i, asset in enumerate(assets) if self.matches(asset))

    def filtered(self, assets: Sequence[Asset]) -> list[Asset]:
        return [assets[i] for i in self.apply(assets)]
