"""Web3 backed collaborators against contract doubles.

No node is needed: the contract proxies are `MagicMock` instances
answering the calls the adapters make.
"""

from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError

from eth_batch_savings.abi import get_abi_by_filename, get_deployed_contract
from eth_batch_savings.access import Capability, PermissionAuthority
from eth_batch_savings.errors import ReserveTickUnavailable
from eth_batch_savings.onchain import (
    DEFAULT_GAS,
    BlockClock,
    Web3AccessControl,
    Web3NativeCurrency,
    Web3SavingsReserve,
    Web3Token,
    Web3TransactionFailed,
)
from eth_batch_savings.reserve import YieldReserve
from eth_batch_savings.testing import CUSTODY, RECEIVER, RESERVE_ADDRESS, ZCHF_ADDRESS
from eth_batch_savings.timestamp import Clock
from eth_batch_savings.vault import BatchedSavingsVault

TX_HASH = HexBytes("0x" + "12" * 32)


def create_contract(address: str, status: int = 1) -> MagicMock:
    contract = MagicMock()
    contract.address = address
    contract.w3.eth.wait_for_transaction_receipt.return_value = {"status": status}
    return contract


def test_token_transfer():
    contract = create_contract(ZCHF_ADDRESS)
    contract.functions.transfer.return_value.transact.return_value = TX_HASH

    token = Web3Token(contract)
    assert token.transfer(CUSTODY, RECEIVER, 5)

    contract.functions.transfer.assert_called_once_with(RECEIVER, 5)
    contract.functions.transfer.return_value.transact.assert_called_once_with({"from": CUSTODY, "gas": DEFAULT_GAS})
    contract.w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH)


def test_token_transfer_from_failed_status():
    contract = create_contract(ZCHF_ADDRESS, status=0)
    token = Web3Token(contract)
    assert not token.transfer_from(CUSTODY, RECEIVER, CUSTODY, 5)
    contract.functions.transferFrom.assert_called_once_with(RECEIVER, CUSTODY, 5)


def test_token_transfer_reverted():
    contract = create_contract(ZCHF_ADDRESS)
    contract.functions.transferFrom.return_value.transact.side_effect = ContractLogicError("execution reverted: ERC20: insufficient allowance")
    token = Web3Token(contract)
    assert not token.transfer_from(CUSTODY, RECEIVER, CUSTODY, 5)


def test_token_balance():
    contract = create_contract(ZCHF_ADDRESS)
    contract.functions.balanceOf.return_value.call.return_value = 1234
    assert Web3Token(contract).balance_of(CUSTODY) == 1234


def test_reserve_reads():
    contract = create_contract(RESERVE_ADDRESS)
    contract.functions.currentTicks.return_value.call.return_value = 100
    contract.functions.ticks.return_value.call.return_value = 200
    contract.functions.currentRatePPM.return_value.call.return_value = 37_500
    contract.functions.INTEREST_DELAY.return_value.call.return_value = 259_200

    reserve = Web3SavingsReserve(contract, create_contract(ZCHF_ADDRESS))
    assert reserve.current_ticks() == 100
    assert reserve.tick_count_at(1_700_000_000) == 200
    contract.functions.ticks.assert_called_once_with(1_700_000_000)
    assert reserve.current_rate_ppm() == 37_500
    assert reserve.activation_delay() == 259_200


def test_reserve_tick_lookup_reverted():
    contract = create_contract(RESERVE_ADDRESS)
    contract.functions.ticks.return_value.call.side_effect = ContractLogicError("execution reverted")
    reserve = Web3SavingsReserve(contract, create_contract(ZCHF_ADDRESS))
    with pytest.raises(ReserveTickUnavailable):
        reserve.tick_count_at(1)


def test_reserve_deposit_failed():
    reserve = Web3SavingsReserve(create_contract(RESERVE_ADDRESS, status=0), create_contract(ZCHF_ADDRESS))
    with pytest.raises(Web3TransactionFailed):
        reserve.deposit(CUSTODY, 10)


def test_reserve_withdraw_reads_paid_amount():
    """Paid amount comes from the ZCHF transfer from the savings module to the target."""
    contract = create_contract(RESERVE_ADDRESS)
    token = create_contract(ZCHF_ADDRESS)
    token.events.Transfer.return_value.process_receipt.return_value = [
        {"args": {"from": "0x" + "00" * 20, "to": RESERVE_ADDRESS, "value": 3}},
        {"args": {"from": RESERVE_ADDRESS, "to": RECEIVER, "value": 97}},
    ]

    reserve = Web3SavingsReserve(contract, token)
    paid = reserve.withdraw(CUSTODY, RECEIVER.lower(), 100)

    assert paid == 97
    contract.functions.withdraw.assert_called_once_with(RECEIVER.lower(), 100)
    contract.functions.withdraw.return_value.transact.assert_called_once_with({"from": CUSTODY, "gas": DEFAULT_GAS})


def test_access_control():
    contract = create_contract("0x" + "ac" * 20)
    contract.functions.hasRole.return_value.call.return_value = True
    authority = Web3AccessControl(contract)
    assert authority.is_authorized(RECEIVER, Capability.receiver)
    contract.functions.hasRole.assert_called_once_with(Web3.keccak(text="RECEIVER_ROLE"), RECEIVER)


def test_native_currency():
    web3 = MagicMock()
    web3.eth.send_transaction.return_value = TX_HASH
    web3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    web3.eth.get_balance.return_value = 10**18

    native = Web3NativeCurrency(web3)
    assert native.transfer(CUSTODY, RECEIVER, 10)
    web3.eth.send_transaction.assert_called_once_with({"from": CUSTODY, "to": RECEIVER, "value": 10, "gas": 21_000})
    assert native.balance_of(CUSTODY) == 10**18


def test_block_clock():
    web3 = MagicMock()
    web3.eth.get_block.return_value = {"timestamp": "0x6553f100"}
    assert BlockClock(web3).now() == 0x6553F100

    web3.eth.get_block.return_value = {"timestamp": 1_700_000_000}
    assert BlockClock(web3).now() == 1_700_000_000


def test_bundled_abi():
    abi = get_abi_by_filename("ISavings.json")
    names = {item["name"] for item in abi["abi"]}
    assert {"save", "withdraw", "currentTicks", "ticks", "currentRatePPM", "INTEREST_DELAY"} <= names

    contract = get_deployed_contract(Web3(), "IERC20.json", ZCHF_ADDRESS.lower())
    assert contract.address == ZCHF_ADDRESS
    assert contract.functions.transferFrom is not None


def test_reserve_balance_includes_accrued_interest():
    contract = create_contract(RESERVE_ADDRESS)
    contract.functions.savings.return_value.call.return_value = (1_000, 5_000_000)
    contract.functions.accruedInterest.return_value.call.return_value = 25
    reserve = Web3SavingsReserve(contract, create_contract(ZCHF_ADDRESS))

    assert reserve.get_balance(CUSTODY) == 1_025
    contract.functions.savings.assert_called_once_with(CUSTODY)
    contract.functions.accruedInterest.assert_called_once_with(CUSTODY)


def test_rescue_tokens_at_address():
    """Any ERC-20 held by custody can be rescued by its address."""
    web3 = MagicMock()
    web3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    stray = create_contract("0x" + "77" * 20)
    stray.w3 = web3
    stray.functions.transfer.return_value.transact.return_value = TX_HASH
    web3.eth.contract.return_value = stray

    zchf = create_contract(ZCHF_ADDRESS)
    zchf.w3 = web3
    authority = MagicMock(spec=PermissionAuthority)
    authority.is_authorized.return_value = True

    vault = BatchedSavingsVault(
        custody=CUSTODY,
        token=Web3Token(zchf, gas=300_000),
        reserve=MagicMock(spec=YieldReserve),
        authority=authority,
        clock=MagicMock(spec=Clock),
    )
    vault.rescue_tokens(CUSTODY, "0x" + "77" * 20, RECEIVER, 500)

    assert web3.eth.contract.call_args.kwargs["address"] == Web3.to_checksum_address("0x" + "77" * 20)
    stray.functions.transfer.assert_called_once_with(RECEIVER, 500)
    stray.functions.transfer.return_value.transact.assert_called_once_with({"from": CUSTODY, "gas": 300_000})
    zchf.functions.transfer.assert_not_called()
