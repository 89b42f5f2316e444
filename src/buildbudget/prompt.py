"""Request payload construction for the estimation service."""
from __future__ import annotations

from typing import Any, Dict, List

from .models import ProjectParams

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional construction cost estimator. Be precise. ONLY include "
    "categories that match the user's selected scope. If a scope is not selected, do "
    "not generate a category for it. Always return valid JSON. Ensure "
    "'recommendedScopes' is populated with valuable additions relevant to the "
    "specific project parameters."
)

DEFAULT_USER_PROMPT = (
    "Act as a Senior Quantity Surveyor and Construction Cost Estimator.\n"
    "Project: {name}\n"
    "Location: {location}\n"
    "Cost scenario: {scenario}\n\n"
    "CORE CALCULATION RULES:\n"
    "1. DEMOLITION COSTS: Must be calculated based ONLY on existing square footage "
    "({existing_sqft} SF building, {existing_site_sqft} SF site).\n"
    "2. NEW CONSTRUCTION: Must be calculated based on proposed square footage "
    "({proposed_sqft} SF building, {site_sqft} SF site).\n\n"
    "SCOPE SELECTION (CRITICAL: ONLY include categories in the response for the items "
    "listed as TRUE below):\n"
    "- Demolition Selected: {include_demolition} (Types: {demolition_types})\n"
    "- Site Prep Selected: {include_site_prep} (Types: {site_prep_types})\n"
    "- Structural Shell Selected: {include_structure} (Standard: {shell_delivery})\n"
    "- Interior Fit-out Selected: {include_interior}\n"
    "- Custom Scope/Details: {custom_scope}\n\n"
    "Instructions for Output:\n"
    "1. ONLY return categories for the scopes selected above, exactly one category per "
    "selected scope. Do not omit a selected scope that has a nonzero area.\n"
    "2. If 'Structural Shell' is FALSE, do NOT include a Shell Construction category.\n"
    "3. If 'Interior Fit-out' is FALSE, do NOT include an Interior Fit-out category.\n"
    "4. If a custom scope is provided, incorporate those costs as categories or line items.\n"
    "5. Calculate costs based on local material/labor rates for {location}.\n"
    "6. Use unique string IDs for all categories, and unique IDs for items within a category.\n"
    "7. Every category must contain at least one line item, and every line item must have "
    "\"included\" set to true.\n\n"
    "EXPERT ADVICE & ADDITIONAL SCOPES:\n"
    "- In \"expertAdvice\", summarise the overall budget health.\n"
    "- In \"recommendedScopes\", list 3-5 components that are NOT in the budget but are "
    "likely necessary, each with name, importance and suggestedCostRange.\n"
    "- In \"neededFiles\", list documents that would sharpen the estimate.\n"
    "{attachments}"
    "Return strictly JSON matching the BudgetResult schema."
)


def _format_area(value: float) -> str:
    return f"{float(value):,.0f}"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _join(values) -> str:
    names = [getattr(value, "value", str(value)) for value in values]
    return ", ".join(names) if names else "None specified"


def build_user_prompt(params: ProjectParams, template: str | None = None) -> str:
    """Render the estimation prompt for ``params``; the same input always yields the same text."""
    custom_scope = params.custom_scope.strip() if params.include_custom_scope else ""
    attachments = ""
    if params.files:
        names = ", ".join(f.name for f in params.files)
        attachments = f"\nAttached project files for reference: {names}\n\n"
    return (template or DEFAULT_USER_PROMPT).format(
        name=params.name,
        location=params.location,
        scenario=params.scenario.value,
        existing_sqft=_format_area(params.existing_sqft),
        existing_site_sqft=_format_area(params.existing_site_sqft),
        proposed_sqft=_format_area(params.proposed_sqft),
        site_sqft=_format_area(params.site_sqft),
        include_demolition=_flag(params.include_demolition),
        demolition_types=_join(params.demolition_types),
        include_site_prep=_flag(params.include_site_prep),
        site_prep_types=_join(params.site_prep_types),
        include_structure=_flag(params.include_structure),
        shell_delivery=params.shell_delivery.value,
        include_interior=_flag(params.include_interior),
        custom_scope=custom_scope or "None",
        attachments=attachments,
    )


def build_input(params: ProjectParams, system_prompt: str | None = None) -> List[Dict[str, Any]]:
    """Assemble the message list for the responses API, including attached files."""
    content: List[Dict[str, Any]] = [{"type": "input_text", "text": build_user_prompt(params)}]
    for attachment in params.files:
        if attachment.is_image:
            content.append({"type": "input_image", "image_url": attachment.to_data_url()})
        else:
            content.append(
                {
                    "type": "input_file",
                    "filename": attachment.name,
                    "file_data": attachment.to_data_url(),
                }
            )
    return [
        {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


__all__ = ["DEFAULT_SYSTEM_PROMPT", "DEFAULT_USER_PROMPT", "build_user_prompt", "build_input"]
