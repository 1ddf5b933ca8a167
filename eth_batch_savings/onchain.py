"""Web3 backed collaborators.

Drive the ledger against deployed contracts:
the ZCHF token, the Frankencoin savings module and an AccessControl authority.

- Every state changing call is a transaction sent from the given account,
  with a fixed gas limit, and waited for

- A transaction that mines with status 0 counts as a failure

.. note ::

    Transactions already mined cannot be rolled back.
    If a ledger call aborts halfway, the in-process ledger state is restored,
    but the tokens already moved on the chain stay moved.
    A redemption checks the savings balance before withdrawing, and if the withdrawal
    still pays a different amount, the redeemed records stay deleted.
"""

import logging

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError
from web3.logs import DISCARD

from eth_batch_savings.abi import get_deployed_contract
from eth_batch_savings.access import Capability, PermissionAuthority
from eth_batch_savings.errors import ReserveTickUnavailable
from eth_batch_savings.reserve import YieldReserve
from eth_batch_savings.timestamp import Clock
from eth_batch_savings.token import AssetTransferService


logger = logging.getLogger(__name__)


#: Gas limit for token and savings module transactions
DEFAULT_GAS = 500_000

#: Gas limit for plain native currency sends
NATIVE_TRANSFER_GAS = 21_000


class Web3TransactionFailed(Exception):
    """A transaction we sent mined with a failure status."""


def wait_transaction_success(web3: Web3, tx_hash: HexBytes) -> bool:
    """Wait a transaction to be mined.

    :return:
        True if the transaction succeeded
    """
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash)
    if receipt["status"] != 1:
        logger.warning("Transaction %s failed: %s", tx_hash, receipt)
        return False
    return True


class Web3Token(AssetTransferService):
    """ERC-20 token on a chain."""

    def __init__(self, contract: Contract, gas: int = DEFAULT_GAS):
        self.contract = contract
        self.address = contract.address
        self.gas = gas

    @classmethod
    def from_address(cls, web3: Web3, address: HexAddress | str, gas: int = DEFAULT_GAS) -> "Web3Token":
        return cls(get_deployed_contract(web3, "IERC20.json", address), gas=gas)

    @property
    def web3(self) -> Web3:
        return self.contract.w3

    def __repr__(self):
        return f"<Web3Token at {self.address}>"

    def _send(self, func, sender: HexAddress | str) -> bool:
        try:
            tx_hash = func.transact({"from": sender, "gas": self.gas})
        except ContractLogicError as e:
            logger.warning("Token call %s from %s reverted: %s", func.fn_name, sender, e)
            return False
        return wait_transaction_success(self.web3, tx_hash)

    def transfer_from(self, spender: HexAddress | str, from_: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        return self._send(self.contract.functions.transferFrom(from_, to, amount), spender)

    def transfer(self, sender: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        return self._send(self.contract.functions.transfer(to, amount), sender)

    def approve(self, owner: HexAddress | str, spender: HexAddress | str, amount: int) -> bool:
        return self._send(self.contract.functions.approve(spender, amount), owner)

    def balance_of(self, account: HexAddress | str) -> int:
        return self.contract.functions.balanceOf(account).call()


class Web3SavingsReserve(YieldReserve):
    """Frankencoin savings module on a chain.

    The amount a withdrawal paid is read from the ZCHF `Transfer` events of the receipt,
    as the return value of a transaction is not available.
    """

    def __init__(self, contract: Contract, token: Contract, gas: int = DEFAULT_GAS):
        self.contract = contract
        self.token = token
        self.address = contract.address
        self.gas = gas

    @classmethod
    def from_address(cls, web3: Web3, address: HexAddress | str, token_address: HexAddress | str, gas: int = DEFAULT_GAS) -> "Web3SavingsReserve":
        return cls(
            get_deployed_contract(web3, "ISavings.json", address),
            get_deployed_contract(web3, "IERC20.json", token_address),
            gas=gas,
        )

    @property
    def web3(self) -> Web3:
        return self.contract.w3

    def __repr__(self):
        return f"<Web3SavingsReserve at {self.address}>"

    def deposit(self, sender: HexAddress | str, amount: int):
        tx_hash = self.contract.functions.save(amount).transact({"from": sender, "gas": self.gas})
        if not wait_transaction_success(self.web3, tx_hash):
            raise Web3TransactionFailed(f"save({amount}) from {sender} failed")

    def current_ticks(self) -> int:
        return self.contract.functions.currentTicks().call()

    def tick_count_at(self, timestamp: int) -> int:
        try:
            return self.contract.functions.ticks(timestamp).call()
        except ContractLogicError as e:
            raise ReserveTickUnavailable(f"ticks({timestamp}) reverted: {e}") from e

    def current_rate_ppm(self) -> int:
        return self.contract.functions.currentRatePPM().call()

    def activation_delay(self) -> int:
        return self.contract.functions.INTEREST_DELAY().call()

    def get_balance(self, owner: HexAddress | str) -> int:
        saved, _ = self.contract.functions.savings(owner).call()
        return saved + self.contract.functions.accruedInterest(owner).call()

    def withdraw(self, sender: HexAddress | str, target: HexAddress | str, amount: int) -> int:
        tx_hash = self.contract.functions.withdraw(target, amount).transact({"from": sender, "gas": self.gas})
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise Web3TransactionFailed(f"withdraw({target}, {amount}) from {sender} failed")

        target = Web3.to_checksum_address(target)
        paid = 0
        for log in self.token.events.Transfer().process_receipt(receipt, errors=DISCARD):
            args = log["args"]
            if args["from"] == self.address and args["to"] == target:
                paid += args["value"]
        return paid


class Web3AccessControl(PermissionAuthority):
    """OpenZeppelin AccessControl roles as capabilities."""

    def __init__(self, contract: Contract):
        self.contract = contract

    @classmethod
    def from_address(cls, web3: Web3, address: HexAddress | str) -> "Web3AccessControl":
        return cls(get_deployed_contract(web3, "IAccessControl.json", address))

    def is_authorized(self, account: HexAddress | str, capability: Capability) -> bool:
        return self.contract.functions.hasRole(capability.get_role_id(), account).call()


class Web3NativeCurrency(AssetTransferService):
    """Native currency held by an account, e.g. ETH."""

    address = None

    def __init__(self, web3: Web3, gas: int = NATIVE_TRANSFER_GAS):
        self.web3 = web3
        self.gas = gas

    def transfer(self, sender: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        tx_hash = self.web3.eth.send_transaction({"from": sender, "to": to, "value": amount, "gas": self.gas})
        return wait_transaction_success(self.web3, tx_hash)

    def balance_of(self, account: HexAddress | str) -> int:
        return self.web3.eth.get_balance(account)

    def transfer_from(self, spender, from_, to, amount) -> bool:
        raise NotImplementedError("Native currency has no allowances")

    def approve(self, owner, spender, amount) -> bool:
        raise NotImplementedError("Native currency has no allowances")


class BlockClock(Clock):
    """Latest block timestamp as the current moment."""

    def __init__(self, web3: Web3):
        self.web3 = web3

    def now(self) -> int:
        ts = self.web3.eth.get_block("latest")["timestamp"]
        # Depending on middleware, response might be converted or not
        if type(ts) == str:
            return int(ts, 16)
        return ts
