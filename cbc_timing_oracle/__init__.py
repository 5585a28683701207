"""CBC padding-oracle timing attack simulator."""

from cbc_timing_oracle.attack.padding_oracle_attacker import recover_block
from cbc_timing_oracle.services.oracle_service import new_oracle

__all__ = ["new_oracle", "recover_block"]
