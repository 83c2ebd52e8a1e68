"""Session and global settings applied around a maintenance run."""

from typing import List, Optional

from .models import CapabilitySet
from .policy import Policy

FULLTEXT_ONLY_ON = "SET @@GLOBAL.innodb_optimize_fulltext_only=true;"
FULLTEXT_ONLY_OFF = "SET @@GLOBAL.innodb_optimize_fulltext_only=false;"
FULLTEXT_ONLY_DEFAULT = "SET @@GLOBAL.innodb_optimize_fulltext_only=DEFAULT;"


def build_presettings(capabilities: CapabilitySet, policy: Policy) -> List[str]:
    """Statements run once before any maintenance statement."""
    statements = ["SET @@SESSION.old_alter_table=false;"]
    if capabilities.alter_algorithm:
        statements.append("SET @@SESSION.alter_algorithm='INPLACE';")
    if capabilities.defragment and capabilities.set_global:
        statements.append("SET @@GLOBAL.innodb_defragment=true;")
        for param, value in policy.defrag_params.items():
            statements.append(f"SET @@GLOBAL.innodb_defragment_{param}={value};")
    return statements


def build_postsettings(capabilities: CapabilitySet, policy: Policy) -> List[str]:
    """Statements reverting everything ``build_presettings`` may have changed."""
    statements = ["SET @@SESSION.old_alter_table=DEFAULT;"]
    if capabilities.alter_algorithm:
        statements.append("SET @@SESSION.alter_algorithm=DEFAULT;")
    if capabilities.defragment and capabilities.set_global:
        statements.append("SET @@GLOBAL.innodb_defragment=DEFAULT;")
        for param in policy.defrag_params:
            statements.append(f"SET @@GLOBAL.innodb_defragment_{param}=DEFAULT;")
    if capabilities.set_global:
        statements.append(FULLTEXT_ONLY_DEFAULT)
    return statements


def fulltext_toggle(has_fulltext: bool) -> str:
    return FULLTEXT_ONLY_ON if has_fulltext else FULLTEXT_ONLY_OFF


def maintenance_statement(policy: Policy, schema: str, enabled: bool) -> Optional[str]:
    """Statement switching maintenance mode, or None when no flag is configured."""
    if policy.maintenance_flag is None:
        return None
    return policy.maintenance_flag.statement(schema, enabled)
