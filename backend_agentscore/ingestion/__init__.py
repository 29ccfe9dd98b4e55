"""
Ingestion: Base JSON-RPC client, adaptive block-range fetcher, USDC indexer.
"""
