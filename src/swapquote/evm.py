"""EVM call data for router deposits and ERC-20 approvals."""

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

EVM_NATIVE_ASSET_ADDRESS = "0x0000000000000000000000000000000000000000"

DEPOSIT_WITH_EXPIRY_SIGNATURE = "depositWithExpiry(address,address,uint256,string,uint256)"
APPROVE_SIGNATURE = "approve(address,uint256)"


def get_evm_approval_data(contract_address: str, native_amount: str) -> str:
    """Call data for ``approve(contract_address, native_amount)``, 0x-prefixed."""
    selector = function_signature_to_4byte_selector(APPROVE_SIGNATURE)
    args = encode(["address", "uint256"], [to_checksum_address(contract_address), int(native_amount)])
    return "0x" + (selector + args).hex()


def get_deposit_with_expiry_data(
    vault_address: str,
    asset_address: str,
    native_amount: str,
    memo: str,
    expiry: int,
) -> str:
    """Call data for the router's ``depositWithExpiry``, without 0x prefix."""
    selector = function_signature_to_4byte_selector(DEPOSIT_WITH_EXPIRY_SIGNATURE)
    args = encode(
        ["address", "address", "uint256", "string", "uint256"],
        [
            to_checksum_address(vault_address),
            to_checksum_address(asset_address),
            int(native_amount),
            memo,
            int(expiry),
        ],
    )
    return (selector + args).hex()
