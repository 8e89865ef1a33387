"""Interface adapters (command line) for Configwatch."""
