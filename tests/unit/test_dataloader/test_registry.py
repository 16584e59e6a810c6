"""Tests for entity kinds, relation descriptors and registry validation."""

from __future__ import annotations

import pytest

from graph_loader.core.exceptions import ConfigurationError
from graph_loader.dataloader.naming import LoaderNamingStrategy
from graph_loader.dataloader.registry import (
    EntityKind,
    EntityRegistry,
    RelationDescriptor,
    ToMany,
    ToOne,
)


@pytest.fixture
def bare_registry() -> EntityRegistry:
    return EntityRegistry(
        kinds=[
            EntityKind("User", "id", fields={"id", "name"}),
            EntityKind("Post", "id", fields={"id", "owner_id"}),
            EntityKind("Tag", "id"),
        ]
    )


class TestEntityKind:
    """Test entity kind construction."""

    def test_string_primary_key_normalized(self):
        kind = EntityKind("User", "id")

        assert kind.primary_key == ("id",)
        assert not kind.composite

    def test_composite_primary_key(self):
        kind = EntityKind("Membership", ("org_id", "user_id"))

        assert kind.composite

    def test_primary_key_required(self):
        with pytest.raises(ConfigurationError, match="primary key"):
            EntityKind("User", ())

    def test_primary_key_must_be_declared_field(self):
        with pytest.raises(ConfigurationError, match="declared fields"):
            EntityKind("User", "uuid", fields={"id"})


class TestRelationDescriptors:
    """Test the ToOne/ToMany variants."""

    def test_cardinality(self):
        posts = ToMany("posts", owner="User", target="Post", local="id", remote="owner_id")
        owner = ToOne("owner", owner="Post", target="User", local="owner_id", remote="id")

        assert posts.many and posts.cardinality == "many"
        assert not owner.many and owner.cardinality == "one"
        assert posts.local == ("id",)
        assert owner.qualified_name == "Post.owner"


class TestRegistration:
    """Test registry validation at registration time."""

    def test_lookup(self, bare_registry):
        relation = bare_registry.register_relation(
            ToMany("posts", owner="User", target="Post", local="id", remote="owner_id")
        )

        assert bare_registry.entity("User").name == "User"
        assert bare_registry.relation("User", "posts") is relation
        assert "User" in bare_registry
        assert bare_registry.kinds == ["User", "Post", "Tag"]
        assert list(bare_registry.relations_of("User")) == ["posts"]

    def test_unknown_kind(self, bare_registry):
        with pytest.raises(ConfigurationError) as exc_info:
            bare_registry.entity("Usr")

        assert exc_info.value.details["kind"] == "Usr"

    def test_unknown_relation(self, bare_registry):
        with pytest.raises(ConfigurationError, match="Unknown relation"):
            bare_registry.relation("User", "comments")

    def test_duplicate_kind(self, bare_registry):
        with pytest.raises(ConfigurationError, match="registered twice"):
            bare_registry.register_entity(EntityKind("User", "id"))

    def test_duplicate_relation(self, bare_registry):
        relation = ToMany("posts", owner="User", target="Post", local="id", remote="owner_id")
        bare_registry.register_relation(relation)

        with pytest.raises(ConfigurationError, match="registered twice"):
            bare_registry.register_relation(relation)

    def test_unknown_target(self, bare_registry):
        with pytest.raises(ConfigurationError, match="Unknown entity kind"):
            bare_registry.register_relation(
                ToMany("comments", owner="User", target="Comment", local="id", remote="user_id")
            )

    def test_mismatched_correlation(self, bare_registry):
        with pytest.raises(ConfigurationError, match="matching local and remote"):
            bare_registry.register_relation(
                ToMany("posts", owner="User", target="Post", local=("id", "name"), remote="owner_id")
            )

    def test_unknown_attributes(self, bare_registry):
        with pytest.raises(ConfigurationError, match="unknown attributes"):
            bare_registry.register_relation(
                ToMany("posts", owner="User", target="Post", local="id", remote="author_id")
            )

    def test_undeclared_fields_not_checked(self, bare_registry):
        """Kinds without declared fields accept any attribute name."""
        bare_registry.register_relation(
            ToOne("creator", owner="Tag", target="User", local="creator_id", remote="id")
        )

    def test_join_table_only_for_to_many(self, bare_registry):
        with pytest.raises(ConfigurationError, match="Only to-many"):
            bare_registry.register_relation(
                ToOne(
                    "tag",
                    owner="Post",
                    target="Tag",
                    local="id",
                    remote="id",
                    through="post_tags",
                    through_local="post_id",
                    through_remote="tag_id",
                )
            )

    def test_join_columns_must_match(self, bare_registry):
        with pytest.raises(ConfigurationError, match="Join table columns"):
            bare_registry.register_relation(
                ToMany("tags", owner="Post", target="Tag", local="id", remote="id", through="post_tags")
            )

    def test_join_columns_without_table(self, bare_registry):
        with pytest.raises(ConfigurationError, match="without a join table"):
            bare_registry.register_relation(
                ToMany(
                    "tags",
                    owner="Post",
                    target="Tag",
                    local="id",
                    remote="id",
                    through_local="post_id",
                )
            )

    def test_only_closed_variants(self, bare_registry):
        """The base descriptor is not a registrable relation."""
        with pytest.raises(ConfigurationError, match="ToOne or ToMany"):
            bare_registry.register_relation(
                RelationDescriptor("posts", owner="User", target="Post", local="id", remote="owner_id")
            )


class TestRelationLookup:
    """Test external-name lookups and relation shape checks."""

    def test_relation_for_field_uses_naming(self, bare_registry):
        bare_registry.register_relation(
            ToOne("owner_user", owner="Post", target="User", local="owner_id", remote="id")
        )

        found = bare_registry.relation_for_field("Post", "ownerUser", LoaderNamingStrategy.SNAKECASE)

        assert found is not None and found.name == "owner_user"
        assert bare_registry.relation_for_field("Post", "title", LoaderNamingStrategy.SNAKECASE) is None

    def test_relation_for_field_falls_back_to_raw_name(self, bare_registry):
        bare_registry.register_relation(
            ToMany("posts", owner="User", target="Post", local="id", remote="owner_id")
        )

        assert bare_registry.relation_for_field("User", "posts", str.upper) is not None

    def test_targets_primary_key(self, bare_registry):
        owner = bare_registry.register_relation(
            ToOne("owner", owner="Post", target="User", local="owner_id", remote="id")
        )
        posts = bare_registry.register_relation(
            ToMany("posts", owner="User", target="Post", local="id", remote="owner_id")
        )

        assert bare_registry.targets_primary_key(owner)
        assert not bare_registry.targets_primary_key(posts)
