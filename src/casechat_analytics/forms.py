from typing import Dict, List, Mapping, Tuple

REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "section": ("section_id", "section_title"),
    "student": ("full_name",),
    "instructor": ("email", "password"),
    "scenario": ("scenario_name", "protagonist", "protagonist_initials", "chat_question"),
    "prompt": ("use", "version", "prompt_template"),
    "case_file_url": ("url", "file_type"),
    "prompt_order": ("prompt_order",),
}

FIELD_LABELS = {
    "section_id": "Section ID",
    "section_title": "Section title",
    "full_name": "Full name",
    "email": "Email",
    "password": "Password",
    "scenario_name": "Scenario name",
    "protagonist": "Protagonist",
    "protagonist_initials": "Protagonist initials",
    "chat_question": "Chat question",
    "use": "Use",
    "version": "Version",
    "prompt_template": "Prompt template",
    "url": "URL",
    "file_type": "File type",
    "prompt_order": "Prompt order",
}


def _blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def validate_form(kind: str, payload: Mapping[str, object]) -> List[str]:
    """Return one message per missing required field; empty when the payload is valid."""

    if kind not in REQUIRED_FIELDS:
        raise ValueError(f"Unknown form kind '{kind}'. Expected one of: {', '.join(REQUIRED_FIELDS)}")

    errors = []
    for name in REQUIRED_FIELDS[kind]:
        if _blank(payload.get(name)):
            errors.append(f"{FIELD_LABELS.get(name, name)} is required")

    if kind == "instructor" and not _blank(payload.get("email")) and "@" not in str(payload["email"]):
        errors.append("Email must be a valid address")
    if kind == "prompt_order" and not _blank(payload.get("prompt_order")):
        try:
            if int(payload["prompt_order"]) < 0:
                errors.append("Prompt order must be zero or greater")
        except (TypeError, ValueError):
            errors.append("Prompt order must be a whole number")
    return errors
