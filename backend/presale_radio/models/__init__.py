from presale_radio.models.catalog_item import CatalogItem
from presale_radio.models.radio_playlist import RadioPlaylist, PlaylistEntry, PlaylistStatus, EntryKind
from presale_radio.models.radio_schedule import RadioSchedule

__all__ = [
    "CatalogItem",
    "RadioPlaylist",
    "PlaylistEntry",
    "PlaylistStatus",
    "EntryKind",
    "RadioSchedule",
]
