"""Client module - Local store, cloud providers, sync engine and CLI."""
