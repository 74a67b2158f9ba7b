"""Runtime capability gate.  Every attempt to open a minter passes through here."""

from __future__ import annotations

import logging

from mintable.config import Mode
from mintable.grants import GrantTable

logger = logging.getLogger(__name__)


class CapabilityEnforcer:
    def __init__(self, mode: Mode, table: GrantTable):
        self.mode = mode
        self.table = table

    def is_authorized(self, identity: str | None, contract_key: str) -> bool:
        """Decide whether *identity* may use the minter for *contract_key*.

        Only enforce mode can say no.  The other modes allow everything but
        still report callers that enforce mode would have denied.
        """
        if self.table.allows(contract_key, identity):
            return True

        who = identity if identity is not None else "<unresolved caller>"
        if self.mode is Mode.ENFORCE:
            logger.warning("denied minter for contract %r to %s", contract_key, who)
            return False
        if self.mode is Mode.REPORT_ONLY:
            logger.warning(
                "report-only: %s used minter for contract %r without a grant", who, contract_key
            )
        else:
            logger.info(
                "permissive: %s used minter for contract %r without a grant "
                "(would be denied under enforce)",
                who,
                contract_key,
            )
        return True


class DenyAll:
    """Stand-in enforcer for a context that cannot make decisions."""

    def __init__(self, reason: str):
        self.reason = reason

    def is_authorized(self, identity: str | None, contract_key: str) -> bool:
        logger.warning("denied minter for contract %r to %s: %s", contract_key, identity, self.reason)
        return False
