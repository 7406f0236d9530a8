from .articles import Article, ArticlesProxy
from .artists import Artist, ArtistsProxy
from .base import BaseCollectionProxy, BaseEntity, Field, MetaField
from .journalists import Journalist, JournalistsProxy

__all__ = [
    "Article",
    "ArticlesProxy",
    "Artist",
    "ArtistsProxy",
    "BaseCollectionProxy",
    "BaseEntity",
    "Field",
    "Journalist",
    "JournalistsProxy",
    "MetaField",
]
