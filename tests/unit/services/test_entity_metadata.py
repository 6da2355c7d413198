"""
Unit tests for ORM introspection.
"""

from basepack.models.enums import AttrType, Cardinality
from basepack.models.orm.base import find_model
from basepack.services.entity_metadata import entity_metadata
from tests.helpers.models import Author, Book, Role, User


class TestEntityMetadata:

    def test_attributes_and_types(self):
        meta = entity_metadata(Book)

        assert meta.primary_key == "id"
        assert meta.attributes["title"].attr_type is AttrType.STRING
        assert meta.attributes["title"].nullable is False
        assert meta.attributes["notes"].attr_type is AttrType.TEXT
        assert meta.attributes["exemplars"].attr_type is AttrType.INTEGER
        assert meta.attributes["price"].attr_type is AttrType.DECIMAL
        assert meta.attributes["digitized"].attr_type is AttrType.BOOLEAN
        assert meta.attributes["published_on"].attr_type is AttrType.DATE

    def test_belongs_to_association_has_foreign_key(self):
        association = entity_metadata(User).association("role")

        assert association.target is Role
        assert association.cardinality is Cardinality.BELONGS_TO
        assert association.foreign_key == "role_id"

    def test_has_many_association(self):
        association = entity_metadata(Role).association("users")

        assert association.cardinality is Cardinality.HAS_MANY
        assert association.foreign_key is None

    def test_properties_and_methods_are_virtual_attributes(self):
        assert entity_metadata(User).attribute("full_name").virtual is True
        assert entity_metadata(Author).attribute("name").attr_type is AttrType.VIRTUAL

    def test_unknown_and_private_names_resolve_to_none(self):
        meta = entity_metadata(User)

        assert meta.attribute("nope") is None
        assert meta.attribute("_sa_instance_state") is None
        assert meta.attribute("role") is None

    def test_find_model_by_name(self):
        assert find_model("User") is User
        assert find_model("Nope") is None
