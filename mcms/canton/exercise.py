"""
Choice submission against the MCMS template.

Daml contracts are immutable: every consuming choice archives the MCMS
contract and creates a new one. The new contract id has to be picked up
from the transaction's Created events before anything else is sent, so a
transaction without one is an error, never a warning.
"""

from typing import Any, Dict

from ..constants import CANTON_MCMS_TEMPLATE_KEY
from ..exceptions import NoCreatedEvent
from ..logger import get_logger
from ..sdk.client import ChainClient, submit_step
from ..types.chain_selector import ChainFamily
from ..types.operation import TransactionResult
from .encoding import find_created

logger = get_logger(__name__)


def exercise(
    client: ChainClient,
    contract_id: str,
    choice: str,
    arguments: Dict[str, Any],
    step: str,
    template_key: str = CANTON_MCMS_TEMPLATE_KEY,
    timelock_operation: bool = False,
) -> TransactionResult:
    """
    Exercise ``choice`` on ``contract_id`` and capture the re-created contract.

    Returns:
        TransactionResult whose contract_address is the new contract id and
        whose raw_data holds NewMCMSContractID, NewMCMSTemplateID and RawTx

    Raises:
        NoCreatedEvent: the transaction did not create a new MCMS contract
        SubmissionFailed: the ledger rejected the command
    """
    result = submit_step(client, contract_id, choice, arguments, step=step, timelock_operation=timelock_operation)
    created = find_created(result.created, template_key)
    if created is None:
        logger.error(f"[{step}] no Created {template_key} event in tx {result.tx_hash}")
        raise NoCreatedEvent(
            step,
            message=f"{step} tx had no Created MCMS event; refusing to continue with old CID={contract_id}",
        )
    logger.debug(f"[{step}] MCMS contract {contract_id} re-created as {created.contract_id}")
    return TransactionResult(
        hash=result.tx_hash,
        chain_family=ChainFamily.CANTON,
        contract_address=created.contract_id,
        raw_data={
            "NewMCMSContractID": created.contract_id,
            "NewMCMSTemplateID": created.template_id,
            "RawTx": result.raw,
        },
    )
