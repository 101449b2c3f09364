from typing import Any, Dict, Iterable, List, Optional

POLICY_TYPES = {"METADATA", "PLATFORM"}
POLICY_STATES = {"ACTIVE", "INACTIVE"}

REQUIRED_STR_FIELDS = ["displayName", "type", "state"]
OPTIONAL_STR_FIELDS = ["description"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_policy_info(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for a dataHubPolicyInfo
    payload. Empty list means valid.
    """
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        if f in data and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    if _is_non_empty_str(data.get("type")) and data["type"] not in POLICY_TYPES:
        errors.append(f"Field 'type' must be one of {sorted(POLICY_TYPES)}")
    if _is_non_empty_str(data.get("state")) and data["state"] not in POLICY_STATES:
        errors.append(f"Field 'state' must be one of {sorted(POLICY_STATES)}")

    privileges = data.get("privileges")
    if privileges is None:
        errors.append("Missing required field: privileges")
    elif not isinstance(privileges, list) or not all(isinstance(p, str) for p in privileges):
        errors.append("Field 'privileges' must be a list of strings")

    if "editable" in data and not isinstance(data["editable"], bool):
        errors.append("Field 'editable' must be a boolean if provided")

    return errors


def project_policy_info(
    info: Dict[str, Any],
    fields: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    Build the search document fields derived from a dataHubPolicyInfo payload.

    Args:
        info: Policy info payload
        fields: Restrict the projection to these document fields (all when None)

    Returns:
        Document fields; absent source values are left out, not nulled
    """
    doc: Dict[str, Any] = {}
    if "displayName" in info:
        doc["displayName"] = info["displayName"]
    if "description" in info:
        doc["description"] = info["description"]
    if "type" in info:
        doc["type"] = info["type"]
    if "state" in info:
        doc["state"] = info["state"]
    if "privileges" in info:
        doc["privilege"] = list(info["privileges"])
    # editable defaults to true in the policy model
    doc["editable"] = bool(info.get("editable", True))

    if fields is not None:
        wanted = set(fields)
        doc = {k: v for k, v in doc.items() if k in wanted}
    return doc
