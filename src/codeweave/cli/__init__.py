"""cwv command line."""
