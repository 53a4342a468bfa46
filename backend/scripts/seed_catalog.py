"""Seed a handful of radio-eligible catalog items and start the radio on them."""
import asyncio

from sqlalchemy import select

# (title, artist, release, genre, duration_sec)
TRACKS = [
    ("Vinyl Dreams", "The Groove Cutters", "Side A Stories", "Indie Rock", 212),
    ("Digital Age", "Analog Hearts", "Warm Static", "Synth Pop", 198),
    ("Crackle & Hiss", "Needle Drop", "Dust Sleeves", "Lo-Fi", 174),
    ("Midnight Pressing", "Lacquer", "Test Pressing", "Electronic", 245),
    ("Run-Out Groove", "Matrix Number", "Etched", "Post-Punk", 186),
]


async def main():
    from presale_radio.db.session import session_scope
    from presale_radio.main import ensure_tables
    from presale_radio.models.catalog_item import CatalogItem
    from presale_radio.services.rotation_controller import RotationController

    await ensure_tables()

    async with session_scope() as db:
        result = await db.execute(select(CatalogItem).limit(1))
        if result.scalar_one_or_none():
            print("Catalog items already exist, skipping seed.")
        else:
            for index, (title, artist, release, genre, duration) in enumerate(TRACKS):
                slug = title.lower().replace(" ", "_").replace("&", "and")
                db.add(CatalogItem(
                    title=title,
                    artist_name=artist,
                    release_title=release,
                    genre=genre,
                    record_label="Independent",
                    preview_audio_url=f"previews/{slug}.mp3",
                    duration_seconds=duration,
                    priority=len(TRACKS) - index,
                ))
                print(f"Added: {title} by {artist} ({duration}s)")

    async with session_scope() as db:
        playlist = await RotationController(db).regenerate()
        print(
            f"Radio started on playlist {playlist.id}: "
            f"{playlist.entry_count} entries, {playlist.total_duration_seconds}s"
        )


if __name__ == "__main__":
    asyncio.run(main())
