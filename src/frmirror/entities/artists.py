# entities/artists.py
from ..fields import PostKind
from .base import BaseEntity, BaseCollectionProxy, MetaField


class Artist(BaseEntity):
    """Schema for /artist posts. Photographers, illustrators and other contributors."""

    ENDPOINT = "artist"
    KIND = PostKind.ARTIST

    first_name: str = MetaField("_artist_first_name")
    last_name: str = MetaField("_artist_last_name")
    position: str = MetaField("_artist_title")
    email: str = MetaField("_artist_email")
    website: str = MetaField("_artist_website")
    instagram: str = MetaField("_artist_instagram")
    bio_short: str = MetaField("_artist_bio_short")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ArtistsProxy(BaseCollectionProxy):
    ENTITY_CLS = Artist
    ENDPOINT = "artist"
