"""
CLI Client Module.

Command-line client built with Typer for driving classification runs.

Architecture:
- CLI is a thin presentation layer
- Run orchestration lives in services.lifecycle
- Service calls go through api.client (httpx)

Usage:
    python cli.py --help
    python cli.py --access-token $TOKEN run -p <project> -i <dataset> -c <changeset>
"""
