"""
IPython/Jupyter key-completion for slug lookups on post collections:

    client.journalists["ada<TAB>
    client.artists['gr<TAB>

Importing this module registers the completer with the running IPython
shell, if there is one.
"""

import re

from IPython import get_ipython

from frmirror.entities.base import BaseCollectionProxy

# variable.collection["prefix  (either quote style)
_LOOKUP_RE = re.compile(r"""(\w+)\.(\w+)\[(["'])([^"']*)$""")


def slug_completions(collection, prefix: str):
    """Slugs of ``collection`` starting with ``prefix``, in index order."""
    if not isinstance(collection, BaseCollectionProxy):
        return []
    try:
        slugs = collection.slugs()
    except Exception:
        # Completion must never break the prompt (e.g. the site is unreachable)
        return []
    return [s for s in slugs if s.startswith(prefix)]


def completion_for_collections(self, event):
    """Completer hook for ``<object>.<collection>["<prefix>`` expressions."""
    match = _LOOKUP_RE.search(event.line)
    if not match:
        return []

    var_name, attr_name, _quote, prefix = match.groups()

    shell = get_ipython()
    if shell is None:
        return []

    base_obj = shell.user_ns.get(var_name)
    if base_obj is None:
        return []

    return slug_completions(getattr(base_obj, attr_name, None), prefix)


def register(shell=None) -> bool:
    """Install the completer on ``shell`` (default: the running IPython)."""
    shell = shell or get_ipython()
    if not shell:
        return False
    shell.set_hook("complete_command", completion_for_collections)
    return True


register()
