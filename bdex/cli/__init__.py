"""
Command-line interface: Typer app, Rich formatters and progress display.
"""
