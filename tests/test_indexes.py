import pytest

from nerdtalk.core.errors import NotFound
from nerdtalk.services import indexes

from fakes import seed_community, seed_user, use_tables


def test_record_authorship_adds_to_user_set():
    with use_tables() as tables:
        seed_user(tables, "U1")
        indexes.record_authorship("U1", "p1")
        indexes.record_authorship("U1", "p2")
        assert tables.users.items["U1"]["post_ids"] == {"p1", "p2"}


def test_record_authorship_unknown_user():
    with use_tables() as tables:
        with pytest.raises(NotFound):
            indexes.record_authorship("ghost", "p1")
        assert tables.users.items == {}


def test_record_community_post():
    with use_tables() as tables:
        seed_community(tables, "c1", "org_1")
        indexes.record_community_post("c1", "p1")
        assert tables.communities.items["c1"]["post_ids"] == {"p1"}


def test_scrub_restricted_to_given_owners():
    with use_tables() as tables:
        seed_user(tables, "U1", post_ids={"p1", "p2"})
        seed_user(tables, "U2", post_ids={"p1"})
        indexes.scrub({"p1"}, author_ids={"U1"}, community_ids=set())
        assert tables.users.items["U1"]["post_ids"] == {"p2"}
        assert tables.users.items["U2"]["post_ids"] == {"p1"}
        assert "Scan" not in tables.users.calls


def test_scrub_sweeps_all_owners_when_none_given():
    with use_tables() as tables:
        seed_user(tables, "U1", post_ids={"p1", "p2"})
        seed_user(tables, "U2", post_ids={"p1"})
        seed_user(tables, "U3", post_ids={"p9"})
        seed_community(tables, "c1", "org_1", post_ids={"p2", "p3"})
        indexes.scrub({"p1", "p2"})
        assert tables.users.items["U1"].get("post_ids") is None
        assert tables.users.items["U2"].get("post_ids") is None
        assert tables.users.items["U3"]["post_ids"] == {"p9"}
        assert tables.communities.items["c1"]["post_ids"] == {"p3"}


def test_scrub_is_idempotent_and_skips_missing_owners():
    with use_tables() as tables:
        seed_user(tables, "U1", post_ids={"p1", "p2"})
        indexes.scrub({"p1"}, author_ids={"U1", "gone"}, community_ids={"c-gone"})
        indexes.scrub({"p1"}, author_ids={"U1", "gone"}, community_ids={"c-gone"})
        assert tables.users.items["U1"]["post_ids"] == {"p2"}
        assert "gone" not in tables.users.items
