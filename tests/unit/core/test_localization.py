"""
Unit tests for the catalog localizer.
"""

from basepack.core.localization import ACTION_KEY_PREFIX, CatalogLocalizer, humanize


class TestCatalogLocalizer:

    def test_translates_builtin_keys(self):
        assert CatalogLocalizer().translate(f"{ACTION_KEY_PREFIX}.del") == "Delete"

    def test_interpolates_params(self):
        text = CatalogLocalizer().translate("basepack.grid_panel.add_form_title", model="User")

        assert text == "Add User"

    def test_custom_catalog_overrides_defaults(self):
        localizer = CatalogLocalizer({f"{ACTION_KEY_PREFIX}.add": "Hinzufügen"})

        assert localizer.translate(f"{ACTION_KEY_PREFIX}.add") == "Hinzufügen"

    def test_unknown_key_falls_back_to_default_then_key(self):
        localizer = CatalogLocalizer()

        assert localizer.translate("missing.key", "Fallback") == "Fallback"
        assert localizer.translate("missing.key") == "missing.key"


class TestHumanize:

    def test_association_column(self):
        assert humanize("role__name") == "Role name"

    def test_strips_id_suffix(self):
        assert humanize("author_id") == "Author"

    def test_plain_attribute(self):
        assert humanize("first_name") == "First name"
