"""frmirror - Meta fields and block bindings for the Article, Journalist and Artist post types."""

from .bindings import Binding, BindingResolver, Namespace
from .client import Client, Credentials
from .config import Settings
from .fields import FieldDefinition, PostKind, ValueType
from .mirror import MetaMirror, shape
from .rest import MetaFieldsController
from .store import FieldStore, InMemoryPostStore, Post, User

__all__ = [
    "Binding",
    "BindingResolver",
    "Client",
    "Credentials",
    "FieldDefinition",
    "FieldStore",
    "InMemoryPostStore",
    "MetaFieldsController",
    "MetaMirror",
    "Namespace",
    "Post",
    "PostKind",
    "Settings",
    "User",
    "ValueType",
    "shape",
]
__version__ = "0.1.0"
