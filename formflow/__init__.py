"""FormFlow data-source connector service."""
