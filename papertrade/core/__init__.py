"""Core types, constants, exceptions and interfaces."""
