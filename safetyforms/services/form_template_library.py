"""
Built-in form templates.

Organizations start from these and get their own copy with fresh field ids;
the library definitions themselves are never edited.
"""

from typing import Any

from safetyforms.db.enums import FieldType, FormCategory
from safetyforms.schemas.forms import FormField, FormTemplate, SystemTemplateSummary
from safetyforms.services import form_field_service, form_template_service
from safetyforms.services.form_errors import TemplateNotFoundError


# =============================================================================
# System Form Templates
# =============================================================================

SYSTEM_TEMPLATES: list[dict[str, Any]] = [
    {
        "system_key": "incident-report-basic",
        "name": "Basic Incident Report",
        "description": (
            "A simple form for reporting workplace accidents, near misses, and safety incidents"
        ),
        "category": FormCategory.INCIDENT,
        "fields": [
            {
                "type": FieldType.TEXT,
                "label": "Incident Title",
                "placeholder": "Brief description of the incident",
                "help_text": "Provide a short title describing what happened",
                "required": True,
            },
            {"type": FieldType.DATE, "label": "Date of Incident", "required": True},
            {
                "type": FieldType.SELECT,
                "label": "Incident Type",
                "required": True,
                "options": [
                    {"label": "Injury", "value": "injury"},
                    {"label": "Near Miss", "value": "near_miss"},
                    {"label": "Property Damage", "value": "property_damage"},
                    {"label": "Environmental", "value": "environmental"},
                    {"label": "Other", "value": "other"},
                ],
            },
            {
                "type": FieldType.TEXTAREA,
                "label": "Incident Description",
                "placeholder": "Describe what happened",
                "help_text": (
                    "Provide details about what happened, who was involved, and the circumstances"
                ),
                "required": True,
            },
            {
                "type": FieldType.TEXT,
                "label": "Location",
                "placeholder": "Where did the incident occur?",
                "required": True,
            },
            {"type": FieldType.CHECKBOX, "label": "Medical Attention Required"},
            {
                "type": FieldType.FILE,
                "label": "Photos or Documents",
                "help_text": "Attach any relevant photos or documents (optional)",
            },
        ],
    },
    {
        "system_key": "heat-stress-prevention",
        "name": "Heat Stress Prevention Checklist",
        "description": "Checklist for preventing heat-related illness in hot work environments",
        "category": FormCategory.HEAT_PREVENTION,
        "fields": [
            {"type": FieldType.TEXT, "label": "Project/Site Name", "required": True},
            {"type": FieldType.DATE, "label": "Date", "required": True},
            {
                "type": FieldType.NUMBER,
                "label": "Current Temperature (°F)",
                "required": True,
                "validation": {"min": -40, "max": 140},
            },
            {
                "type": FieldType.NUMBER,
                "label": "Humidity (%)",
                "required": True,
                "validation": {"min": 0, "max": 100},
            },
            {
                "type": FieldType.SELECT,
                "label": "Heat Index Risk Level",
                "required": True,
                "options": [
                    {"label": "Low (Below 91°F)", "value": "low"},
                    {"label": "Moderate (91-103°F)", "value": "moderate"},
                    {"label": "High (103-115°F)", "value": "high"},
                    {"label": "Extreme (Above 115°F)", "value": "extreme"},
                ],
            },
            {"type": FieldType.CHECKBOX, "label": "Water Available"},
            {"type": FieldType.CHECKBOX, "label": "Shade Available"},
            {"type": FieldType.EMPLOYEE_LIST, "label": "Crew Lead", "required": True},
            {"type": FieldType.TEXTAREA, "label": "Additional Notes"},
        ],
    },
]

_BY_KEY = {t["system_key"]: t for t in SYSTEM_TEMPLATES}


def list_system_templates() -> list[SystemTemplateSummary]:
    return [
        SystemTemplateSummary(
            system_key=t["system_key"],
            name=t["name"],
            description=t.get("description"),
            category=t["category"],
            field_count=len(t["fields"]),
        )
        for t in SYSTEM_TEMPLATES
    ]


def instantiate_system_template(system_key: str, *, created_by: str | None = None) -> FormTemplate:
    """Build a new, unsaved organization template from a library entry.

    Raises:
        TemplateNotFoundError if `system_key` is not in the library
    """
    definition = _BY_KEY.get(system_key)
    if definition is None:
        raise TemplateNotFoundError(f"System template not found: {system_key}")
    fields = [
        _build_field(field_data, order)
        for order, field_data in enumerate(definition["fields"])
    ]
    return form_template_service.create_template(
        definition["name"],
        description=definition.get("description"),
        category=definition["category"],
        created_by=created_by,
        fields=fields,
        system_key=system_key,
    )


def _build_field(field_data: dict[str, Any], order: int) -> FormField:
    field = form_field_service.create_field(
        field_data["type"],
        field_data.get("label", ""),
        order=order,
        placeholder=field_data.get("placeholder"),
        help_text=field_data.get("help_text"),
        required=field_data.get("required", False),
    )
    if "options" in field_data:
        field = form_field_service.update_field(
            field, {"options": field_data["options"]}
        ).field
    for kind, value in field_data.get("validation", {}).items():
        field = form_field_service.set_validation_rule(field, kind, value)
    return field
