"""CLI module for emul."""
