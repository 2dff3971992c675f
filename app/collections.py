"""
Collection names used by the portal.

Keep every literal collection path here so services and blueprints never
spell them inline.
"""

NEWS = "newsItems"
DOCUMENTS = "documents"
LABS = "labs"
RANKINGS = "rankings"
CONTACTS = "contacts"
EVENTS = "events"
HIGHLIGHTS = "highlights"
MESSAGES = "messages"
COLLABORATORS = "collaborators"
QUICK_LINKS = "quickLinks"
APPLICATIONS = "applications"
WORKFLOW_AREAS = "workflowAreas"
WORKFLOW_DEFINITIONS = "workflowDefinitions"
WORKFLOWS = "workflows"
POLLS = "polls"
FAB_MESSAGES = "fabMessages"
IDLE_FAB_MESSAGES = "idleFabMessages"
AUDIT_LOGS = "audit_logs"
SYSTEM_SETTINGS = "systemSettings"
COUNTERS = "counters"

SYSTEM_SETTINGS_DOC = "config"
WORKFLOW_COUNTER = "workflowCounter"


def poll_responses(poll_id: str) -> str:
    """Sub-collection holding the answers of one poll."""
    return f"{POLLS}/{poll_id}/responses"
