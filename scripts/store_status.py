#!/usr/bin/env python3
"""Show record counts for every portal collection in the configured store."""
import sys
sys.path.insert(0, ".")

from app import collections as col
from app import create_app
from app.storage import get_store

COLLECTIONS = [
    col.NEWS, col.DOCUMENTS, col.LABS, col.RANKINGS, col.CONTACTS, col.EVENTS,
    col.HIGHLIGHTS, col.MESSAGES, col.COLLABORATORS, col.QUICK_LINKS,
    col.APPLICATIONS, col.WORKFLOW_AREAS, col.WORKFLOW_DEFINITIONS, col.WORKFLOWS,
    col.POLLS, col.FAB_MESSAGES, col.IDLE_FAB_MESSAGES, col.AUDIT_LOGS,
]

app = create_app()
with app.app_context():
    store = get_store()
    print(f"    backend: {store.backend_name}")
    total = 0
    for name in COLLECTIONS:
        c = len(store.list(name))
        total += c
        print(f"    {name:.<30} {c}")
    print(f"    {'TOTAL':.<30} {total}")
