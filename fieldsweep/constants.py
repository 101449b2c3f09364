"""Well-known entity, aspect and actor names shared across the sweep."""

POLICY_ENTITY_NAME = "dataHubPolicy"
DATAHUB_POLICY_INFO_ASPECT_NAME = "dataHubPolicyInfo"

DATA_HUB_UPGRADE_ENTITY_NAME = "dataHubUpgrade"
DATA_HUB_UPGRADE_RESULT_ASPECT_NAME = "dataHubUpgradeResult"

SYSTEM_ACTOR = "urn:li:corpuser:__datahub_system"
DEFAULT_RUN_ID = "no-run-id-provided"

# Search projection fields that the policy sweep repairs
POLICY_SEARCH_FIELDS = ["privilege", "editable", "state", "type"]
