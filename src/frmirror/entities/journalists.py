# entities/journalists.py
from ..fields import PostKind
from .base import BaseEntity, BaseCollectionProxy, MetaField


class Journalist(BaseEntity):
    """Schema for /journalist posts. Staff members and writers."""

    ENDPOINT = "journalist"
    KIND = PostKind.JOURNALIST

    first_name: str = MetaField("_journalist_first_name")
    last_name: str = MetaField("_journalist_last_name")
    email: str = MetaField("_journalist_email")
    phone: str = MetaField("_journalist_phone")
    position: str = MetaField("_journalist_title")
    twitter: str = MetaField("_journalist_twitter")
    linkedin: str = MetaField("_journalist_linkedin")
    bio_short: str = MetaField("_journalist_bio_short")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class JournalistsProxy(BaseCollectionProxy):
    ENTITY_CLS = Journalist
    ENDPOINT = "journalist"
