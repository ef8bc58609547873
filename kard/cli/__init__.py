"""Command-line front end for kard."""
