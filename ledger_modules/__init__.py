"""Business-facing modules built on the ledger kernel: reporting, chart of accounts templates, transaction mappings."""
