"""
Shared hover/selection state for the world map and the ranked country list.

Both views render from the same Selection and report intents (hover, select,
clear) back to their owner, which produces the next Selection.
"""
from pydantic import BaseModel, ConfigDict


class Selection(BaseModel):
    """Hovered and selected region, keyed by ISO alpha-3 code."""
    model_config = ConfigDict(frozen=True)

    hovered: str | None = None
    selected: str | None = None

    @property
    def state(self) -> str:
        """idle, hovered or selected (selection wins over hover)."""
        if self.selected:
            return "selected"
        if self.hovered:
            return "hovered"
        return "idle"

    def hover(self, iso_code: str | None) -> "Selection":
        """Pointer entered a region (or left all regions when None)."""
        return self.model_copy(update={"hovered": iso_code})

    def select(self, iso_code: str | None) -> "Selection":
        """Click on a region. Single selection: replaces any previous one.

        Clicking the already-selected region keeps it selected; use clear().
        """
        if iso_code is None:
            return self
        return self.model_copy(update={"selected": iso_code})

    def clear(self) -> "Selection":
        return Selection(hovered=self.hovered)

    def is_hovered(self, iso_code: str | None) -> bool:
        return iso_code is not None and iso_code == self.hovered

    def is_selected(self, iso_code: str | None) -> bool:
        return iso_code is not None and iso_code == self.selected
