"""
Safe MultiSend batching.

Several calls are packed into one ``multiSend(bytes)`` call that the Safe
executes with DELEGATECALL, so every inner call runs as the Safe itself.
Each entry is ``encodePacked(uint8 operation, address to, uint256 value,
uint256 dataLength, bytes data)``. The batch is atomic: if one inner call
reverts, all of them revert.
"""

from typing import List, Sequence

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from config.constants import MULTISEND_SELECTOR, SAFE_MULTISEND_ADDRESS
from .encoding import hex_to_bytes
from .models import CallDescriptor, OperationType

# operation(1) + to(20) + value(32) + dataLength(32)
_HEADER_SIZE = 1 + 20 + 32 + 32


def encode_multisend_transactions(calls: Sequence[CallDescriptor]) -> bytes:
    """Serialize calls into the packed MultiSend transactions blob."""
    packed = b""
    for call in calls:
        data = hex_to_bytes(call.data)
        packed += (
            int(call.operation).to_bytes(1, byteorder="big")
            + bytes.fromhex(to_checksum_address(call.to)[2:])
            + call.value.to_bytes(32, byteorder="big")
            + len(data).to_bytes(32, byteorder="big")
            + data
        )
    return packed


def encode_multisend(calls: Sequence[CallDescriptor]) -> str:
    """Encode calls as ``multiSend(bytes)`` calldata."""
    blob = encode_multisend_transactions(calls)
    return MULTISEND_SELECTOR + encode(["bytes"], [blob]).hex()


def decode_multisend(calldata: str) -> List[CallDescriptor]:
    """
    Reverse ``encode_multisend``.

    Raises:
        ValueError: If the calldata is not a well-formed multiSend call
    """
    raw = hex_to_bytes(calldata)
    if raw[:4] != hex_to_bytes(MULTISEND_SELECTOR):
        raise ValueError("Calldata is not a multiSend call")

    (blob,) = decode(["bytes"], raw[4:])

    calls = []
    offset = 0
    while offset < len(blob):
        if offset + _HEADER_SIZE > len(blob):
            raise ValueError(f"Truncated multiSend entry at offset {offset}")
        operation = OperationType(blob[offset])
        to = to_checksum_address("0x" + blob[offset + 1:offset + 21].hex())
        value = int.from_bytes(blob[offset + 21:offset + 53], byteorder="big")
        length = int.from_bytes(blob[offset + 53:offset + 85], byteorder="big")
        start = offset + _HEADER_SIZE
        if start + length > len(blob):
            raise ValueError(f"Truncated multiSend data at offset {offset}")
        data = "0x" + blob[start:start + length].hex()
        calls.append(CallDescriptor(to=to, data=data, value=value, operation=operation))
        offset = start + length
    return calls


def batch_calls(
    calls: Sequence[CallDescriptor],
    multisend_address: str = SAFE_MULTISEND_ADDRESS,
) -> CallDescriptor:
    """
    Collapse calls into the single call the Safe will execute.

    One call passes through unchanged as a CALL. Two or more are wrapped in a
    DELEGATECALL to the MultiSend contract.

    Raises:
        ValueError: If no calls are given
    """
    if not calls:
        raise ValueError("At least one call is required")

    if len(calls) == 1:
        call = calls[0]
        if call.operation != OperationType.CALL:
            raise ValueError("A single batched call must use CALL")
        return call

    return CallDescriptor(
        to=to_checksum_address(multisend_address),
        data=encode_multisend(calls),
        value=0,
        operation=OperationType.DELEGATE_CALL,
    )
