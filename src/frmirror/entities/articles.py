# entities/articles.py
from typing import List

from ..fields import PostKind, ValueType
from .base import BaseEntity, BaseCollectionProxy, MetaField


class Article(BaseEntity):
    """
    Schema for /article posts.

    All meta attributes here are thin accessors over `self.data["meta"]`.
    """

    ENDPOINT = "article"
    KIND = PostKind.ARTICLE

    # Relationships (weak references by post id)
    journalist_ids: List[int] = MetaField("_article_journalists", ValueType.ID_LIST)
    artist_ids: List[int] = MetaField("_article_artists", ValueType.ID_LIST)

    # Body and meeting metadata
    content_html: str = MetaField("_article_content")
    committee: str = MetaField("_article_committee")
    youtube_id: str = MetaField("_article_youtube_id")
    bullet_points: str = MetaField("_article_bullet_points")
    meeting_date: str = MetaField("_article_meeting_date")

    view_count: int = MetaField("_article_view_count", ValueType.INTEGER)


class ArticlesProxy(BaseCollectionProxy):
    ENTITY_CLS = Article
    ENDPOINT = "article"
