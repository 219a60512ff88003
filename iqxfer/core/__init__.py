"""Configuration, logging, shared types and helpers."""
