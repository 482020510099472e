"""Tests for MultiSend batching."""

import pytest
from eth_utils import to_checksum_address

from config.constants import (
    CTF_ADDRESS,
    CTF_EXCHANGE_ADDRESS,
    MAX_UINT256,
    MULTISEND_SELECTOR,
    SAFE_MULTISEND_ADDRESS,
    USDC_E_ADDRESS,
)
from core.relay import (
    CallDescriptor,
    OperationType,
    batch_calls,
    decode_multisend,
    encode_multisend,
)
from core.relay.encoding import encode_erc20_approve, encode_set_approval_for_all


@pytest.fixture
def approve_call() -> CallDescriptor:
    return CallDescriptor(
        to=to_checksum_address(USDC_E_ADDRESS),
        data=encode_erc20_approve(CTF_EXCHANGE_ADDRESS, MAX_UINT256),
    )


@pytest.fixture
def operator_call() -> CallDescriptor:
    return CallDescriptor(
        to=to_checksum_address(CTF_ADDRESS),
        data=encode_set_approval_for_all(CTF_EXCHANGE_ADDRESS, True),
    )


class TestBatchCalls:
    """Tests for batch_calls."""

    def test_single_call_passes_through(self, approve_call):
        batched = batch_calls([approve_call])

        assert batched == approve_call
        assert batched.operation == OperationType.CALL

    def test_multiple_calls_delegate_to_multisend(self, approve_call, operator_call):
        batched = batch_calls([approve_call, operator_call])

        assert batched.operation == OperationType.DELEGATE_CALL
        assert batched.to == to_checksum_address(SAFE_MULTISEND_ADDRESS)
        assert batched.value == 0
        assert batched.data.startswith(MULTISEND_SELECTOR)

    def test_multisend_payload_reconstructs_calls_in_order(self, approve_call, operator_call):
        calls = [approve_call, operator_call, approve_call]

        decoded = decode_multisend(batch_calls(calls).data)

        assert decoded == calls

    def test_custom_multisend_address(self, approve_call, operator_call):
        target = "0x0000000000000000000000000000000000000abc"

        batched = batch_calls([approve_call, operator_call], multisend_address=target)

        assert batched.to == to_checksum_address(target)

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            batch_calls([])

    def test_single_delegate_call_rejected(self, approve_call):
        delegate = CallDescriptor(
            to=approve_call.to,
            data=approve_call.data,
            operation=OperationType.DELEGATE_CALL,
        )

        with pytest.raises(ValueError):
            batch_calls([delegate])


class TestMultisendEncoding:
    """Tests for the packed MultiSend framing."""

    def test_packed_entry_layout(self, approve_call):
        calldata = bytes.fromhex(encode_multisend([approve_call])[2:])
        # selector + offset word + length word, then the packed blob
        blob = calldata[4 + 32 + 32:]
        data = bytes.fromhex(approve_call.data[2:])

        assert blob[0] == int(OperationType.CALL)
        assert blob[1:21] == bytes.fromhex(USDC_E_ADDRESS[2:].lower())
        assert int.from_bytes(blob[21:53], "big") == 0
        assert int.from_bytes(blob[53:85], "big") == len(data)
        assert blob[85:85 + len(data)] == data

    def test_decode_rejects_other_selectors(self, approve_call):
        with pytest.raises(ValueError):
            decode_multisend(approve_call.data)
