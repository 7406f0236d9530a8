import pytest

from frmirror.exceptions import ForbiddenError, InvalidObjectError, UpdateFailedError
from frmirror.fields import PostKind, ValueType, definitions_for, meta_key_for
from frmirror.sanitize import sanitize_email, sanitize_text_field


def test_create_post_derives_slug(post_store):
    post = post_store.create_post("artist", "Grace Hopper")
    assert post.kind is PostKind.ARTIST
    assert post.slug == "grace-hopper"
    assert post_store.create_post("artist", "???").slug == str(post.id + 1)


def test_get_missing_value_returns_type_default(field_store, article):
    assert field_store.get(article.id, "_article_committee") == ""
    assert field_store.get(article.id, "_article_view_count", ValueType.INTEGER) == 0
    assert field_store.get(article.id, "_article_journalists", ValueType.ID_LIST) == []


def test_get_parses_legacy_json_id_list(post_store, field_store, article):
    post_store.update_meta(article.id, "_article_journalists", "[4, 4, 8]")
    assert field_store.get(article.id, "_article_journalists", ValueType.ID_LIST) == [4, 8]

    post_store.update_meta(article.id, "_article_journalists", "{broken")
    assert field_store.get(article.id, "_article_journalists", ValueType.ID_LIST) == []


def test_get_negative_integer_clamps_to_default(post_store, field_store, article):
    post_store.update_meta(article.id, "_article_view_count", -3)
    assert field_store.get(article.id, "_article_view_count", ValueType.INTEGER) == 0


def test_set_id_list_normalizes(field_store, article, editor):
    assert field_store.set(
        article.id, "_article_journalists", [3, 3, "5", -1, "x"],
        ValueType.ID_LIST, lambda v: v, user=editor,
    )
    assert field_store.raw(article.id, "_article_journalists") == [3, 5]


def test_set_non_list_id_value_becomes_empty(field_store, article, editor):
    field_store.set(article.id, "_article_artists", "7", ValueType.ID_LIST, lambda v: v, user=editor)
    assert field_store.raw(article.id, "_article_artists") == []


@pytest.mark.parametrize(
    "value_type, zero",
    [(ValueType.STRING, ""), (ValueType.INTEGER, 0), (ValueType.ID_LIST, [])],
)
@pytest.mark.parametrize("empty", [None, False])
def test_set_null_or_false_stores_zero_value(field_store, article, editor, value_type, zero, empty):
    seen = []

    def sanitizer(value):
        seen.append(value)
        return value

    field_store.set(article.id, "_article_x", empty, value_type, sanitizer, user=editor)
    assert seen == [zero]
    assert field_store.raw(article.id, "_article_x") == zero


def test_set_applies_sanitizer(post_store, field_store, editor):
    journalist = post_store.create_post("journalist", "Ada Lovelace")
    field_store.set(
        journalist.id, "_journalist_email", "not an email", ValueType.STRING, sanitize_email, user=editor
    )
    assert field_store.get(journalist.id, "_journalist_email") == ""


@pytest.mark.parametrize("kind", list(PostKind))
def test_round_trip_equals_sanitized_value(post_store, field_store, editor, kind):
    post = post_store.create_post(kind, "Someone")
    samples = {
        ValueType.STRING: "  <i>Value</i>\nwith text ",
        ValueType.INTEGER: "42",
        ValueType.ID_LIST: ["9", 9, 2],
    }
    for definition in definitions_for(kind):
        raw = samples[definition.value_type]
        field_store.write(post.id, kind, definition, raw, user=editor)

        expected = definition.sanitizer(raw)
        if definition.value_type is ValueType.ID_LIST:
            expected = [9, 2]
        elif definition.value_type is ValueType.INTEGER:
            expected = 42
        assert field_store.read(post.id, kind, definition) == expected


def test_set_requires_edit_capability(field_store, article, subscriber):
    with pytest.raises(ForbiddenError) as excinfo:
        field_store.set(
            article.id, "_article_committee", "Finance", ValueType.STRING,
            sanitize_text_field, user=subscriber,
        )
    assert excinfo.value.status_code == 403
    assert excinfo.value.code == "rest_forbidden"
    assert field_store.raw(article.id, "_article_committee") is None


def test_set_without_user_fails_closed(field_store, article):
    with pytest.raises(ForbiddenError):
        field_store.set(article.id, "_article_committee", "x", ValueType.STRING, sanitize_text_field, user=None)


@pytest.mark.parametrize("post_id", [0, -1, None, "12", 999])
def test_set_rejects_invalid_post(field_store, editor, post_id):
    with pytest.raises(InvalidObjectError) as excinfo:
        field_store.set(post_id, "_article_committee", "x", ValueType.STRING, sanitize_text_field, user=editor)
    assert excinfo.value.status_code == 400
    assert excinfo.value.code == "invalid_object"


def test_set_reports_failed_write(post_store, field_store, article, editor):
    post_store.fail_writes.add("_article_committee")
    with pytest.raises(UpdateFailedError) as excinfo:
        field_store.set(article.id, "_article_committee", "x", ValueType.STRING, sanitize_text_field, user=editor)
    assert excinfo.value.status_code == 500
    assert excinfo.value.data["key"] == "_article_committee"


def test_store_returns_copies(post_store, field_store, article, editor):
    field_store.set(article.id, "_article_artists", [1, 2], ValueType.ID_LIST, lambda v: v, user=editor)
    value = field_store.raw(article.id, "_article_artists")
    value.append(3)
    assert field_store.raw(article.id, "_article_artists") == [1, 2]


def test_delete_post_removes_meta(post_store, field_store, article, editor):
    key = meta_key_for("article", "_article_committee")
    field_store.set(article.id, key, "x", ValueType.STRING, sanitize_text_field, user=editor)
    post_store.delete_post(article.id)
    assert post_store.get_post(article.id) is None
    assert field_store.raw(article.id, key) is None


def test_get_malformed_stored_numbers_degrade_to_default(post_store, field_store, article):
    post_store.update_meta(article.id, "_article_view_count", "9" * 400)
    assert field_store.get(article.id, "_article_view_count", ValueType.INTEGER) == int("9" * 400)

    post_store.update_meta(article.id, "_article_view_count", float("inf"))
    assert field_store.get(article.id, "_article_view_count", ValueType.INTEGER) == 0

    post_store.update_meta(article.id, "_article_journalists", '["' + "9" * 400 + '", 3, 1e400]')
    assert field_store.get(article.id, "_article_journalists", ValueType.ID_LIST) == [int("9" * 400), 3]
