"""Contract addresses and protocol constants for Polygon."""

# Polymarket Safe constants (from @polymarket/builder-relayer-client)
# https://polygonscan.com/address/0xaacfeea03eb1561c4e67d661e40682bd20e3541b
SAFE_FACTORY_ADDRESS = "0xaacfeea03eb1561c4e67d661e40682bd20e3541b"
SAFE_INIT_CODE_HASH = "0x2bce2127ff07fb632d16c8347c4ebf501f4841168bed00d9e6ef715ddb6fcecf"
SAFE_MULTISEND_ADDRESS = "0xa238cbeb142c10ef7ad8442c6d1f9e89e07e7761"

# EIP-712 domain name of the proxy factory (CreateProxy signatures)
SAFE_FACTORY_DOMAIN_NAME = "Polymarket Contract Proxy Factory"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

# Polymarket contracts
USDC_E_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"  # USDC.e on Polygon (collateral)
CTF_ADDRESS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"  # Conditional Token Framework
CTF_EXCHANGE_ADDRESS = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
NEG_RISK_CTF_EXCHANGE_ADDRESS = "0xC5d563A36AE78145C45a50134d48A1215220f80a"
NEG_RISK_ADAPTER_ADDRESS = "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296"

# USDC has 6 decimals
USDC_DECIMALS = 6

# Function selectors
APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
SET_APPROVAL_FOR_ALL_SELECTOR = "0xa22cb465"  # setApprovalForAll(address,bool)
MULTISEND_SELECTOR = "0x8d80ff0a"  # multiSend(bytes)

# Collateral spenders (ERC20 approve) and outcome-token operators (ERC1155
# setApprovalForAll) required before the exchange can settle trades.
USDC_SPENDERS = [
    ("USDC → CTF", CTF_ADDRESS),
    ("USDC → Exchange", CTF_EXCHANGE_ADDRESS),
    ("USDC → NegRisk Exchange", NEG_RISK_CTF_EXCHANGE_ADDRESS),
    ("USDC → NegRisk Adapter", NEG_RISK_ADAPTER_ADDRESS),
]

CTF_OPERATORS = [
    ("CTF → Exchange", CTF_EXCHANGE_ADDRESS),
    ("CTF → NegRisk Exchange", NEG_RISK_CTF_EXCHANGE_ADDRESS),
    ("CTF → NegRisk Adapter", NEG_RISK_ADAPTER_ADDRESS),
]
