"""Setting flattening, confirmation rules, nested updates."""
import pytest

from apps.backend.models.admin_setting import AdminSetting
from apps.backend.services.admin_settings import DEFAULT_SETTINGS, default_setting
from apps.backend.services.setting_toggles import (
    MalformedSettingError,
    SettingPathError,
    filter_items,
    flatten_settings,
    group_items,
    integration_categories,
    requires_confirmation,
    schema_for,
    update_nested_value,
)


def _setting(key, value, category="system", description=None):
    return AdminSetting(key=key, value=value, category=category, description=description)


@pytest.mark.timeout(10)
def test_auth_mode_renders_single_waitlist_switch():
    items = flatten_settings([_setting("auth_mode", {"mode": "waitlist"}, "authentication")])
    assert len(items) == 1
    item = items[0]
    assert item.label == "Waitlist Mode"
    assert item.path == ["mode"]
    assert item.value is True
    assert item.category == "authentication"

    open_items = flatten_settings([_setting("auth_mode", {"mode": "open"}, "authentication")])
    assert open_items[0].value is False


@pytest.mark.timeout(10)
def test_maintenance_emits_global_then_subsections_in_order():
    value = {"enabled": False, "subsections": {"dashboard": True, "api": False}}
    items = flatten_settings([_setting("maintenance_mode", value, "maintenance")])
    assert [i.label for i in items] == ["Global Maintenance", "Maintenance: dashboard", "Maintenance: api"]
    assert [i.path for i in items] == [["enabled"], ["subsections", "dashboard"], ["subsections", "api"]]
    assert [i.value for i in items] == [False, True, False]


@pytest.mark.timeout(10)
def test_data_source_switch():
    items = flatten_settings([_setting("data_source", {"use_mock_data": True})])
    assert [(i.label, i.path, i.value) for i in items] == [("Use Mock Data", ["use_mock_data"], True)]


@pytest.mark.timeout(10)
def test_generic_setting_keeps_only_top_level_booleans():
    value = {"a": True, "b": "text", "c": {"nested": True}, "d": False, "e": 1}
    items = flatten_settings([_setting("custom", value, "experimental", "Custom flags")])
    assert [i.label for i in items] == ["custom: a", "custom: d"]
    assert all(i.description == "Custom flags" for i in items)


@pytest.mark.timeout(10)
def test_generic_non_object_setting_is_skipped():
    assert flatten_settings([_setting("limit", 42)]) == []


@pytest.mark.timeout(10)
def test_special_setting_with_wrong_shape_is_rejected():
    with pytest.raises(MalformedSettingError) as exc:
        flatten_settings([_setting("auth_mode", "open")])
    assert exc.value.key == "auth_mode"


@pytest.mark.timeout(10)
def test_settings_order_is_preserved():
    items = flatten_settings([
        _setting("data_source", {"use_mock_data": False}),
        _setting("auth_mode", {"mode": "open"}, "authentication"),
    ])
    assert [i.setting_key for i in items] == ["data_source", "auth_mode"]


@pytest.mark.timeout(10)
def test_app_features_defaults_emit_top_level_then_brands():
    items = flatten_settings([default_setting("app_features")])
    labels = [i.label for i in items]
    assert labels[:2] == ["Tasks", "Workspace Prompts"]
    assert "Brands: Backlinks" in labels
    backlinks = next(i for i in items if i.label == "Brands: Backlinks")
    assert backlinks.path == ["brands", "backlinks"]
    assert backlinks.value is False
    assert backlinks.icon_type == "lucide"


@pytest.mark.timeout(10)
def test_integrations_are_grouped_enabled_first():
    items = flatten_settings([default_setting("integrations")])
    assert len(items) == len(DEFAULT_SETTINGS["integrations"]["value"])
    assert all(i.category == "integrations" for i in items)
    google = next(i for i in items if i.path == ["google"])
    assert google.integration_category == "Search & Knowledge"
    assert google.icon == "google-drive.svg"

    groups = group_items(items)
    ordered = groups["integrations"]
    enabled = [i for i in ordered if i.value]
    assert ordered[: len(enabled)] == enabled
    labels = [i.label.lower() for i in enabled]
    assert labels == sorted(labels)
    assert "SEO Tools" in integration_categories(items)


@pytest.mark.timeout(10)
def test_filter_by_query_and_integration_category():
    settings = [_setting("auth_mode", {"mode": "open"}, "authentication"), default_setting("integrations")]
    items = flatten_settings(settings)

    found = filter_items(items, "waitlist")
    assert [i.label for i in found] == ["Waitlist Mode"]

    seo = filter_items(items, "", "SEO Tools")
    assert any(i.setting_key == "auth_mode" for i in seo)
    assert {i.integration_category for i in seo if i.category == "integrations"} == {"SEO Tools"}


@pytest.mark.timeout(10)
def test_auth_mode_change_requires_confirmation():
    setting = _setting("auth_mode", {"mode": "open"}, "authentication")
    conf = requires_confirmation(setting, ["mode"], "waitlist")
    assert conf.required is True
    assert conf.title == "Change Authentication Mode?"
    assert '"Open Signup"' in conf.message
    assert '"Waitlist Mode"' in conf.message
    assert conf.message.endswith("Users will need to join the waitlist.")

    back = requires_confirmation(_setting("auth_mode", {"mode": "waitlist"}), ["mode"], "open")
    assert back.required is True
    assert back.message.endswith("Users can sign up freely.")


@pytest.mark.timeout(10)
def test_maintenance_only_enabling_requires_confirmation():
    setting = _setting("maintenance_mode", {"enabled": False, "subsections": {"api": False}})
    assert requires_confirmation(setting, ["enabled"], True).required is True
    assert requires_confirmation(setting, ["enabled"], True).title == "Enable Maintenance Mode?"
    assert requires_confirmation(setting, ["enabled"], False).required is False
    assert requires_confirmation(setting, ["subsections", "api"], True).required is False


@pytest.mark.timeout(10)
def test_other_settings_never_require_confirmation():
    assert requires_confirmation(_setting("data_source", {"use_mock_data": False}), ["use_mock_data"], True).required is False
    assert requires_confirmation(default_setting("integrations"), ["slack"], True).required is False


@pytest.mark.timeout(10)
def test_switch_position_maps_auth_mode_to_strings():
    setting = _setting("auth_mode", {"mode": "open"})
    assert schema_for("auth_mode").stored_value(setting, ["mode"], True) == "waitlist"
    assert schema_for("auth_mode").stored_value(setting, ["mode"], False) == "open"
    assert schema_for("data_source").stored_value(setting, ["use_mock_data"], True) is True


@pytest.mark.timeout(10)
def test_update_nested_value_leaves_siblings_and_input_untouched():
    original = {"enabled": False, "subsections": {"dashboard": False, "api": True}}
    updated = update_nested_value(original, ["subsections", "dashboard"], True)
    assert updated == {"enabled": False, "subsections": {"dashboard": True, "api": True}}
    assert original["subsections"]["dashboard"] is False


@pytest.mark.timeout(10)
def test_update_nested_value_creates_missing_leaf():
    assert update_nested_value({"a": {}}, ["a", "b"], True) == {"a": {"b": True}}


@pytest.mark.timeout(10)
def test_update_nested_value_rejects_missing_intermediate():
    with pytest.raises(SettingPathError):
        update_nested_value({"a": True}, ["missing", "leaf"], True)
    with pytest.raises(SettingPathError):
        update_nested_value({"a": True}, ["a", "leaf"], True)
    with pytest.raises(SettingPathError):
        update_nested_value({}, [], True)
