"""ChatVault command-line interface."""
