"""Data models for the notekeep client."""
