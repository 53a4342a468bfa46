"""Ad-free view of the radio for the footer player, loosely following the main schedule."""
import random
from dataclasses import dataclass, field
from typing import Sequence

from presale_radio.models.radio_playlist import EntryKind
from presale_radio.services.catalog_service import EligibleItem
from presale_radio.services.playback_resolver import PlaybackPosition


@dataclass
class MusicOnlyView:
    candidates: list[EligibleItem] = field(default_factory=list)
    current_index: int = 0
    synced: bool = False

    @property
    def current(self) -> EligibleItem | None:
        return self.candidates[self.current_index] if self.candidates else None

    @property
    def next(self) -> EligibleItem | None:
        if not self.candidates:
            return None
        return self.candidates[(self.current_index + 1) % len(self.candidates)]


def project(
    position: PlaybackPosition,
    candidates: Sequence[EligibleItem],
    rng: random.Random | None = None,
) -> MusicOnlyView:
    """Shuffle the candidates and line the current pick up with the main schedule when possible.

    Alignment is best effort: if the main schedule is on an ad or intro, or its
    track is not among the candidates, the first shuffled candidate plays.
    """
    shuffled = list(candidates)
    (rng or random.Random()).shuffle(shuffled)

    entry = position.entry
    if entry is not None and entry.kind == EntryKind.TRACK and entry.source_ref is not None:
        for index, item in enumerate(shuffled):
            if item.id == entry.source_ref:
                return MusicOnlyView(candidates=shuffled, current_index=index, synced=True)
    return MusicOnlyView(candidates=shuffled)
