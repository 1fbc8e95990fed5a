"""Admin setting toggles: flatten JSON settings into boolean switches.

Every setting with a special shape is declared once in SETTING_SCHEMAS.
A schema knows which toggle items the setting renders to, how a flipped
switch maps back to the stored JSON value and whether the change has to be
confirmed by the admin. Settings without a schema fall back to
GenericSchema: one switch per top-level boolean field.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, asdict
from typing import Any, Iterable

AUTH_MODE_OPEN = "open"
AUTH_MODE_WAITLIST = "waitlist"
AUTH_MODE_LABELS = {
    AUTH_MODE_OPEN: "Open Signup",
    AUTH_MODE_WAITLIST: "Waitlist Mode",
}

FEATURE_ICONS = {
    "tasks": "check-square",
    "workspace_prompts": "message-square",
    "content": "file-text",
    "analytics": "bar-chart-3",
    "ai_tracking": "brain",
    "backlinks": "link",
    "technical_audit": "wrench",
    "social_listening": "ear",
}

INTEGRATION_CATEGORIES = {
    "google": "Search & Knowledge",
    "microsoft": "Search & Knowledge",
    "slack": "Communication",
    "microsoft_teams": "Communication",
    "linear": "Project Management",
    "adobe_analytics": "Analytics",
    "mixpanel": "Analytics",
    "wordpress": "Content & CMS",
    "webflow": "Content & CMS",
    "github": "Version Control",
    "twitter": "Social Media",
    "linkedin": "Social Media",
    "discord": "Social Media",
    "tiktok": "Social Media",
    "ahrefs": "SEO Tools",
    "moz": "SEO Tools",
    "semrush": "SEO Tools",
    "kw_finder": "SEO Tools",
    "zapier": "Automation",
    "make": "Automation",
    "n8n": "Automation",
    "shopify": "E-commerce",
    "meta_ads": "Advertisement",
    "api": "Developer Tools",
    "mcp": "Developer Tools",
    "webhooks": "Developer Tools",
    "davinci": "Platforms",
    "fabriq": "Platforms",
    "klaviyo": "Platforms",
    "apifox": "Platforms",
    "airtable": "Platforms",
    "salesforce": "CRM & Sales",
    "intercom": "CRM & Sales",
    "hubspot": "CRM & Sales",
    "perplexity": "AI Search",
    "gemini": "AI Search",
    "chatgpt": "AI Search",
}

INTEGRATION_ICONS = {
    "google": "google-drive.svg",
    "microsoft": "microsoft.svg",
    "slack": "slack.svg",
    "microsoft_teams": "microsoft.svg",
    "linear": "linear.svg",
    "adobe_analytics": "adobe.svg",
    "mixpanel": "mixpanel.svg",
    "wordpress": "wordpress.svg",
    "webflow": "webflow.svg",
    "github": "github.svg",
    "twitter": "twitter.svg",
    "linkedin": "linkedin.svg",
    "discord": "discord.svg",
    "tiktok": "tiktok.svg",
    "ahrefs": "ahrefs.svg",
    "moz": "moz.svg",
    "semrush": "semrush.svg",
    "kw_finder": "searchapi.svg",
    "zapier": "zapier.svg",
    "make": "make.svg",
    "n8n": "n8n-text.svg",
    "shopify": "shopify_glyph_black.svg",
    "meta_ads": "meta.svg",
    "webhooks": "webhook.svg",
    "klaviyo": "klaviyo.svg",
    "airtable": "airtable.svg",
    "salesforce": "salesforce.svg",
    "perplexity": "perplexity-color.svg",
    "gemini": "gemini.svg",
    "chatgpt": "openai-text.svg",
}
DEFAULT_INTEGRATION_ICON = "globe.svg"

CATEGORY_LABELS = {
    "authentication": "Authentication",
    "maintenance": "Maintenance",
    "system": "System",
    "security": "Security",
    "notifications": "Notifications",
    "experimental": "Experimental",
    "api": "API",
    "mcp": "MCP",
    "features": "Features",
    "integrations": "Integrations",
}


class MalformedSettingError(ValueError):
    """A special-cased setting does not have the JSON shape its schema expects."""

    def __init__(self, key: str, detail: str = "") -> None:
        super().__init__(detail or f"malformed setting: {key}")
        self.key = key
        self.code = "malformed_setting"


class SettingPathError(ValueError):
    def __init__(self, path: list[str], detail: str = "") -> None:
        super().__init__(detail or f"invalid path: {'.'.join(path)}")
        self.path = path
        self.code = "invalid_setting_path"


@dataclass
class SettingToggleItem:
    setting_key: str
    category: str
    label: str
    path: list[str]
    value: bool
    description: str | None = None
    kind: str = "toggle"
    integration_category: str | None = None
    icon: str | None = None
    icon_type: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Confirmation:
    required: bool
    title: str = ""
    message: str = ""


NO_CONFIRMATION = Confirmation(required=False)


def category_label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def _object_value(setting, strict: bool) -> dict | None:
    value = setting.value
    if isinstance(value, dict):
        return value
    if strict:
        raise MalformedSettingError(setting.key, f"{setting.key}: expected a JSON object, got {type(value).__name__}")
    return None


class SettingSchema:
    """Generic setting: one switch per top-level boolean field."""

    strict = False

    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, self.strict)
        if value is None:
            return []
        return [
            SettingToggleItem(
                setting_key=setting.key,
                category=setting.category,
                label=f"{setting.key}: {name}",
                description=setting.description,
                path=[name],
                value=val,
            )
            for name, val in value.items()
            if isinstance(val, bool)
        ]

    def stored_value(self, setting, path: list[str], switched_on: bool) -> Any:
        """JSON value to store when the switch at ``path`` is set to ``switched_on``."""
        return switched_on

    def confirmation(self, setting, path: list[str], new_value: Any) -> Confirmation:
        return NO_CONFIRMATION


class AuthModeSchema(SettingSchema):
    """``{"mode": "open" | "waitlist"}`` rendered as a single Waitlist switch."""

    strict = True

    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, True)
        return [
            SettingToggleItem(
                setting_key=setting.key,
                category=setting.category,
                label="Waitlist Mode",
                description="Enable waitlist mode to require approval for new signups. When OFF, users can sign up freely.",
                path=["mode"],
                value=value.get("mode") == AUTH_MODE_WAITLIST,
            )
        ]

    def stored_value(self, setting, path: list[str], switched_on: bool) -> Any:
        if path == ["mode"]:
            return AUTH_MODE_WAITLIST if switched_on else AUTH_MODE_OPEN
        return switched_on

    def confirmation(self, setting, path: list[str], new_value: Any) -> Confirmation:
        if not path or path[0] != "mode":
            return NO_CONFIRMATION
        current = _object_value(setting, True).get("mode")
        if new_value == current:
            return NO_CONFIRMATION
        current_label = AUTH_MODE_LABELS.get(current, str(current))
        new_label = AUTH_MODE_LABELS.get(new_value, str(new_value))
        consequence = (
            "Users will need to join the waitlist."
            if new_value == AUTH_MODE_WAITLIST
            else "Users can sign up freely."
        )
        return Confirmation(
            required=True,
            title="Change Authentication Mode?",
            message=(
                f'Are you sure you want to change authentication from "{current_label}" '
                f'to "{new_label}"? {consequence}'
            ),
        )


class MaintenanceModeSchema(SettingSchema):
    """Root ``enabled`` switch followed by one switch per ``subsections`` entry."""

    strict = True

    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, True)
        out = [
            SettingToggleItem(
                setting_key=setting.key,
                category=setting.category,
                label="Global Maintenance",
                description="Enable maintenance mode for entire platform",
                path=["enabled"],
                value=bool(value.get("enabled", False)),
            )
        ]
        subsections = value.get("subsections")
        if isinstance(subsections, dict):
            for name, sub_value in subsections.items():
                out.append(
                    SettingToggleItem(
                        setting_key=setting.key,
                        category=setting.category,
                        label=f"Maintenance: {name}",
                        description=f"Enable maintenance mode for {name}",
                        path=["subsections", name],
                        value=bool(sub_value),
                    )
                )
        return out

    def confirmation(self, setting, path: list[str], new_value: Any) -> Confirmation:
        # Only enabling global maintenance asks; disabling and subsections apply at once.
        if path and path[0] == "enabled" and new_value is True:
            return Confirmation(
                required=True,
                title="Enable Maintenance Mode?",
                message=(
                    "Are you sure you want to enable maintenance mode? This will make the platform "
                    "unavailable to users. You can still configure which subsections are affected."
                ),
            )
        return NO_CONFIRMATION


class DataSourceSchema(SettingSchema):
    strict = True

    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, True)
        return [
            SettingToggleItem(
                setting_key=setting.key,
                category=setting.category,
                label="Use Mock Data",
                description="Toggle between mock data and real production data",
                path=["use_mock_data"],
                value=bool(value.get("use_mock_data", False)),
            )
        ]


@dataclass(frozen=True)
class _Feature:
    path: tuple[str, ...]
    label: str
    description: str
    icon: str


class AppFeaturesSchema(SettingSchema):
    """Known feature flags only, top level first, then ``brands.*``."""

    features: tuple[_Feature, ...] = (
        _Feature(("tasks",), "Tasks", "Enable task management features", "tasks"),
        _Feature(("workspace_prompts",), "Workspace Prompts", "Enable workspace-level AI prompts", "workspace_prompts"),
        _Feature(("brands", "content"), "Brands: Content", "Enable content management for brands", "content"),
        _Feature(("brands", "analytics"), "Brands: Analytics", "Enable analytics for brands", "analytics"),
        _Feature(("brands", "ai_tracking"), "Brands: AI Tracking", "Enable AI tracking for brands", "ai_tracking"),
        _Feature(("brands", "backlinks"), "Brands: Backlinks", "Enable backlink tracking for brands", "backlinks"),
        _Feature(("brands", "technical_audit"), "Brands: Technical Audit", "Enable technical SEO audit for brands", "technical_audit"),
        _Feature(("brands", "social_listening"), "Brands: Social Listening", "Enable social listening for brands", "social_listening"),
        _Feature(("brands", "tasks"), "Brands: Tasks", "Enable task management within brands", "tasks"),
    )

    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, False)
        if value is None:
            return []
        out: list[SettingToggleItem] = []
        for feature in self.features:
            node: Any = value
            for part in feature.path:
                node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                continue
            out.append(
                SettingToggleItem(
                    setting_key=setting.key,
                    category=setting.category,
                    label=feature.label,
                    description=feature.description,
                    path=list(feature.path),
                    value=bool(node),
                    icon=FEATURE_ICONS.get(feature.icon),
                    icon_type="lucide",
                )
            )
        return out


class IntegrationsSchema(SettingSchema):
    def items(self, setting) -> list[SettingToggleItem]:
        value = _object_value(setting, False)
        if value is None:
            return []
        return [
            SettingToggleItem(
                setting_key=setting.key,
                category="integrations",
                label=name[:1].upper() + name[1:].replace("_", " "),
                description=f"Enable {name.replace('_', ' ')} integration",
                path=[name],
                value=val,
                integration_category=INTEGRATION_CATEGORIES.get(name, "Other"),
                icon=INTEGRATION_ICONS.get(name, DEFAULT_INTEGRATION_ICON),
                icon_type="image",
            )
            for name, val in value.items()
            if isinstance(val, bool)
        ]


GENERIC_SCHEMA = SettingSchema()

SETTING_SCHEMAS: dict[str, SettingSchema] = {
    "auth_mode": AuthModeSchema(),
    "maintenance_mode": MaintenanceModeSchema(),
    "data_source": DataSourceSchema(),
    "app_features": AppFeaturesSchema(),
    "integrations": IntegrationsSchema(),
}


def schema_for(key: str) -> SettingSchema:
    return SETTING_SCHEMAS.get(key, GENERIC_SCHEMA)


def flatten_settings(settings: Iterable) -> list[SettingToggleItem]:
    """Toggle items in settings order, then emission order within a setting."""
    items: list[SettingToggleItem] = []
    for setting in settings:
        items.extend(schema_for(setting.key).items(setting))
    return items


def requires_confirmation(setting, path: list[str], new_value: Any) -> Confirmation:
    return schema_for(setting.key).confirmation(setting, list(path), new_value)


def update_nested_value(value: Any, path: list[str], new_value: Any) -> Any:
    """Deep copy of ``value`` with ``new_value`` assigned at ``path``; siblings untouched."""
    if not path:
        raise SettingPathError([], "empty path")
    updated = copy.deepcopy(value)
    current = updated
    try:
        for part in path[:-1]:
            current = current[part]
        if not isinstance(current, dict):
            raise SettingPathError(list(path))
        current[path[-1]] = copy.deepcopy(new_value)
    except (KeyError, TypeError, IndexError) as e:
        raise SettingPathError(list(path), f"invalid path {'.'.join(path)}: {e}") from e
    return updated


def filter_items(
    items: list[SettingToggleItem],
    query: str = "",
    integration_category: str = "all",
) -> list[SettingToggleItem]:
    """Search by label/description; the category filter narrows integrations only."""
    q = (query or "").strip().lower()
    out: list[SettingToggleItem] = []
    for item in items:
        matches = (
            not q
            or q in item.label.lower()
            or (item.description is not None and q in item.description.lower())
        )
        if item.category == "integrations" and integration_category != "all":
            matches = matches and item.integration_category == integration_category
        if matches:
            out.append(item)
    return out


def group_items(items: list[SettingToggleItem]) -> dict[str, list[SettingToggleItem]]:
    """Group by category (first-seen order); integrations sorted enabled first, then by label."""
    groups: dict[str, list[SettingToggleItem]] = {}
    for item in items:
        groups.setdefault(item.category, []).append(item)
    if "integrations" in groups:
        groups["integrations"].sort(key=lambda i: (not i.value, i.label.lower()))
    return groups


def integration_categories(items: list[SettingToggleItem]) -> list[str]:
    seen = {
        item.integration_category
        for item in items
        if item.category == "integrations" and item.integration_category
    }
    return sorted(seen)
