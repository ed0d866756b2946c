"""Typer CLI for running the TempGuard pipeline and inspecting its tables."""
