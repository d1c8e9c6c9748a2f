"""Tests for the wish catalog."""

import pytest

from wishwall.errors import NotFound, ValidationError
from wishwall.models import Wish
from wishwall.services import catalog, records


def _attrs(**overrides):
    attrs = {
        "child_name": "Xiao Hong",
        "gender": "female",
        "content": "A warm winter coat",
        "reason": "It snows a lot in our village",
    }
    attrs.update(overrides)
    return attrs


def test_create_wish_defaults(db):
    """Test new wishes start unclaimed and unpublished."""
    wish = catalog.create_wish(_attrs(grade="  "))

    assert wish.id is not None
    assert wish.active_record_id is None
    assert wish.is_published is False
    assert wish.grade is None


def test_create_wish_ignores_back_link(db):
    """Test callers cannot preset the claim link."""
    wish = catalog.create_wish(_attrs(active_record_id=42))
    assert wish.active_record_id is None


def test_create_wish_requires_fields(db):
    """Test missing required fields are rejected."""
    with pytest.raises(ValidationError):
        catalog.create_wish(_attrs(child_name=""))
    with pytest.raises(ValidationError):
        catalog.create_wish(_attrs(gender="other"))
    with pytest.raises(ValidationError) as excinfo:
        catalog.create_wish({k: v for k, v in _attrs().items() if k != "reason"})
    assert "reason" in excinfo.value.message
    with pytest.raises(ValidationError):
        catalog.create_wish(_attrs(reason="   "))
    assert Wish.query.count() == 0


def test_batch_is_all_or_nothing(db):
    """Test one bad entry rejects the whole batch."""
    with pytest.raises(ValidationError) as excinfo:
        catalog.batch_create_wishes([_attrs(), _attrs(content="")])

    assert "Entry 2" in excinfo.value.message
    assert Wish.query.count() == 0

    created = catalog.batch_create_wishes([_attrs(), _attrs(child_name="Xiao Li", gender="male")])
    assert len(created) == 2
    assert Wish.query.count() == 2


def test_batch_rejects_empty_list(db):
    """Test an empty import is an error."""
    with pytest.raises(ValidationError):
        catalog.batch_create_wishes([])


def test_update_wish_is_partial(db):
    """Test updates only touch the given fields."""
    wish = catalog.create_wish(_attrs())

    updated = catalog.update_wish(wish.id, {"content": "Two winter coats", "is_published": True})

    assert updated.content == "Two winter coats"
    assert updated.child_name == "Xiao Hong"
    assert updated.is_published is True
    with pytest.raises(ValidationError):
        catalog.update_wish(wish.id, {"content": "  "})


def test_soft_delete_hides_wish(db):
    """Test deleted wishes disappear from reads and listings."""
    wish = catalog.create_wish(_attrs(is_published=True))

    catalog.delete_wish(wish.id)

    with pytest.raises(NotFound):
        catalog.get_wish(wish.id)
    items, total = catalog.list_wishes()
    assert total == 0 and items == []
    assert db.session.get(Wish, wish.id).deleted_at is not None


def test_delete_claimed_wish_keeps_record(db, make_wish, donor, donor_info):
    """Test deleting a claimed wish leaves its record in place."""
    wish = make_wish()
    record = records.create_claim(wish.id, donor.id, donor_info)

    catalog.delete_wish(wish.id)

    assert records.get_record(record.id).wish_id == wish.id


def test_list_filters(db, make_wish, donor, donor_info):
    """Test content, claimed and published filters."""
    coat = make_wish(content="Winter coat")
    make_wish(content="Story books")
    make_wish(content="Coat hanger", is_published=False)
    records.create_claim(coat.id, donor.id, donor_info)

    items, total = catalog.list_wishes(content="books")
    assert [w.content for w in items] == ["Story books"]
    items, total = catalog.list_wishes(content="oat")
    assert total == 2

    items, total = catalog.list_wishes(claimed=True)
    assert [w.id for w in items] == [coat.id]

    items, total = catalog.list_wishes(claimed=False, published=True)
    assert [w.content for w in items] == ["Story books"]

    items, total = catalog.list_wishes(published=False)
    assert total == 1


def test_list_escapes_like_wildcards(db, make_wish):
    """Test % in the search term is matched literally."""
    make_wish(content="100% cotton scarf")
    make_wish(content="Scarf")

    items, total = catalog.list_wishes(content="100%")
    assert total == 1


def test_list_is_newest_first_and_paginated(db, make_wish):
    """Test ordering and page slicing."""
    ids = [make_wish(content=f"Wish {i}").id for i in range(5)]

    items, total = catalog.list_wishes(page=1, page_size=2)
    assert total == 5
    assert [w.id for w in items] == [ids[4], ids[3]]

    items, total = catalog.list_wishes(page=3, page_size=2)
    assert [w.id for w in items] == [ids[0]]


def test_claimable_respects_publish_gate(app, make_wish):
    """Test drafts become claimable only with the gate off."""
    draft = make_wish(is_published=False)

    assert catalog.claimable(draft) is False
    assert catalog.claimable(draft, publish_gate=False) is True

    app.config["WISH_PUBLISH_GATE"] = False
    assert catalog.claimable(draft) is True
