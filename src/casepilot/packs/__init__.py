"""
CasePilot Configuration Packs

Schema validation and loading for rule packs and workflow packs.

Rule packs define business rules (conditions plus typed actions) and the
escalation ladder. Workflow packs define the per-phase tables used by the
lifecycle validator: required fields, status moves, completion checks,
exceptions, transition gates, approvals and follow-up tasks.

Usage:
    from casepilot.packs import load_default_rule_pack, PackLoader

    # Bundled defaults
    rules = load_default_rule_pack()
    workflow = load_default_workflow_pack()

    # Custom packs
    loader = PackLoader()
    rules = loader.load_rule_pack("path/to/rules.yaml")
    print(rules.pack_hash)
"""
from __future__ import annotations

from .loader import (
    PackLoader,
    RulePack,
    escalation_path_from_schema,
    load_default_rule_pack,
    load_default_workflow_pack,
    load_rule_pack,
    load_rule_pack_from_string,
    load_rule_pack_or_default,
    load_workflow_pack,
    load_workflow_pack_from_string,
    load_workflow_pack_or_default,
    rule_from_schema,
    validate_rule_references,
    validate_workflow_references,
)
from .schema import (
    SCHEMA_VERSION,
    BusinessConditionSchema,
    BusinessRuleSchema,
    EscalationPathSchema,
    PhaseRulesSchema,
    RulePackSchema,
    WorkflowPackSchema,
    check_schema_version,
    validate_rule_pack,
    validate_workflow_pack,
)

__all__ = [
    # Version
    "SCHEMA_VERSION",
    # Loader
    "PackLoader",
    "RulePack",
    "load_rule_pack",
    "load_rule_pack_from_string",
    "load_rule_pack_or_default",
    "load_workflow_pack",
    "load_workflow_pack_from_string",
    "load_workflow_pack_or_default",
    "load_default_rule_pack",
    "load_default_workflow_pack",
    "rule_from_schema",
    "escalation_path_from_schema",
    # Validation
    "validate_rule_pack",
    "validate_workflow_pack",
    "validate_rule_references",
    "validate_workflow_references",
    "check_schema_version",
    # Schemas (for advanced usage)
    "RulePackSchema",
    "WorkflowPackSchema",
    "BusinessRuleSchema",
    "BusinessConditionSchema",
    "EscalationPathSchema",
    "PhaseRulesSchema",
]
