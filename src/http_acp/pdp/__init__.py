"""Policy Decision Point (PDP) - Gate decision engines.

This module decides requests against rule tables and decoded credentials.
Following NIST SP 800-207 Zero Trust Architecture:

- credentials/: Decodes consent cookies and capability tokens
- pdp/ (this module): Resolves requirements and decides
- pep/: Enforces decisions (middleware, rendering)

The PDP is intentionally stateless and side-effect free.
All I/O and enforcement happens in the PEP.

Structure:
    decision.py - Verdict, ReasonCode, GateMode
    rules.py    - RuleEntry, RuleTable, RuleSet and default tables
    matcher.py  - Glob and prefix path matching
    engine.py   - ConsentPolicyEngine, CapabilityPolicyEngine

Rules file I/O is in utils/rules.py.
"""

from http_acp.pdp.decision import GateMode, ReasonCode, Verdict
from http_acp.pdp.engine import CapabilityPolicyEngine, ConsentPolicyEngine
from http_acp.pdp.matcher import match_glob, match_prefix
from http_acp.pdp.rules import (
    ResolvedRequirement,
    RuleEntry,
    RuleSet,
    RuleTable,
    create_default_capability_table,
    create_default_consent_table,
    create_default_rule_set,
)

__all__ = [
    # Decision
    "GateMode",
    "ReasonCode",
    "Verdict",
    # Engines
    "CapabilityPolicyEngine",
    "ConsentPolicyEngine",
    # Matching
    "match_glob",
    "match_prefix",
    # Rule tables
    "ResolvedRequirement",
    "RuleEntry",
    "RuleSet",
    "RuleTable",
    "create_default_capability_table",
    "create_default_consent_table",
    "create_default_rule_set",
]
