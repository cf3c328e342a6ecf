"""Turn free-text or spoken queries into localized, summarized news digests."""

__all__ = ["config", "models", "pipeline", "server"]
