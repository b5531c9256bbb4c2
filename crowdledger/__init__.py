"""CrowdLedger - Valuation ledger for investment crowdfunding with a blockchain mirror."""

__version__ = "0.1.0"
