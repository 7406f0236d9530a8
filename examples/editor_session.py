"""
Example: editing journalist meta and previewing bindings

This example connects to a site, edits a journalist's meta fields through
the entity proxies, then drives a MetaMirror the way the block editor does
around a save.

Usage:
    export FRM_HOME_URL="https://example.com"
    export FRM_USERNAME="editor"
    export FRM_APP_PASSWORD="abcd efgh ijkl mnop"
    python examples/editor_session.py
"""

import os
import time

from frmirror import Client, Credentials, MetaMirror, Settings
from frmirror.config import configure_logging
from frmirror.queries import FILTER_ATTRIBUTE, filter_rest_query


def main():
    # -------------------------------------------------------------------------
    # 1. Initialize the Client
    # -------------------------------------------------------------------------

    settings = Settings.from_env()
    configure_logging(settings)

    creds = Credentials(
        username=os.environ["FRM_USERNAME"],
        application_password=os.environ["FRM_APP_PASSWORD"],
    )
    client = Client(settings.home_url, creds)
    print(f"Connected as {client.me().get('name')}\n")

    # -------------------------------------------------------------------------
    # 2. Browse journalists
    # -------------------------------------------------------------------------

    print("=== Journalists ===\n")
    print(f"{len(client.journalists)} journalists, e.g. {client.journalists.slugs()[:5]}")

    journalist = client.journalists[0]
    print(f"  {journalist.full_name} <{journalist.email or 'no email'}>")

    # Assignments save immediately (sync=True by default)
    journalist.position = "Council reporter"

    # -------------------------------------------------------------------------
    # 3. Mirror a save the way the editor does
    # -------------------------------------------------------------------------

    print("\n=== Editor mirror ===\n")

    mirror = MetaMirror(client, "journalist", refresh_delay=settings.refresh_delay)
    mirror.open(journalist.id).result()

    mirror.edit("bio_short", "Covers city council and budget hearings.")
    print("Preview:", mirror.preview("journalist-meta", "bio_short"))

    mirror.set_saving(True)
    time.sleep(1)
    mirror.set_saving(False)
    time.sleep(settings.refresh_delay + 1)

    print("Stored:", mirror.fields["_journalist_bio_short"])
    mirror.close()

    # -------------------------------------------------------------------------
    # 4. Article meeting metadata
    # -------------------------------------------------------------------------

    print("\n=== Articles ===\n")
    for article in client.articles[0:5]:
        print(f"  {article.title}: {article.view_count} views, meeting {article.meeting_date or 'n/a'}")

    # Listing args a Query Loop block sends, with and without a variation
    for params in ({"per_page": 5}, {"per_page": 5, FILTER_ATTRIBUTE: "_article_view_count"}):
        args = filter_rest_query({"post_type": "article"}, params, settings.default_query_filter)
        print(f"  {params} -> orderby={args.get('orderby')} meta_key={args.get('meta_key')}")


if __name__ == "__main__":
    main()
