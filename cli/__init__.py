"""Command line client for the soil dashboard HTTP API.

Commands are defined in :mod:`cli.app`; import that module directly rather
than expecting a Typer instance on the package.
"""
