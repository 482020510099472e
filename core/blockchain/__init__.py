from core.blockchain.chain_reader import ChainReader

__all__ = ["ChainReader"]
