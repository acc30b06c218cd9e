"""Upgrade instruction model, diffing and merging."""

from .actions import (
    Action,
    DeleteModule,
    LoadModule,
    OpaqueAction,
    PurgeModules,
    action_from_term,
    covered_modules,
    delete_module,
    load_module,
)
from .diff import DiffOutcome, diff_app, diff_modules
from .merge import merge_actions
from .record import (
    WILDCARD,
    AppRecord,
    VersionedActionList,
    VersionEntry,
    VersionPattern,
    parse_record,
    render_record,
)

__all__ = [
    "WILDCARD",
    "Action",
    "AppRecord",
    "DeleteModule",
    "DiffOutcome",
    "LoadModule",
    "OpaqueAction",
    "PurgeModules",
    "VersionEntry",
    "VersionPattern",
    "VersionedActionList",
    "action_from_term",
    "covered_modules",
    "delete_module",
    "diff_app",
    "diff_modules",
    "load_module",
    "merge_actions",
    "parse_record",
    "render_record",
]
