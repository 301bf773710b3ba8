"""CLI module for clawkit."""
