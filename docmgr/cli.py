"""
docmgr CLI — bootstrap and management commands.

Commands:
- docmgr init         — Create tables, seed the super admin and default folder
- docmgr run          — Start the HTTP server (uvicorn)
- docmgr create-user  — Create a user and print its generated login code
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

logger = logging.getLogger("docmgr.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docmgr",
        description="docmgr — ZEOLF document management service",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # docmgr init
    init_parser = subparsers.add_parser("init", help="Create tables and seed the super admin")
    init_parser.add_argument("--config", help="Path to docmgr.yaml (default: $DOCMGR_CONFIG or ./docmgr.yaml)")
    init_parser.add_argument("--admin-code", help="Login code for the seeded super admin (default from config)")
    init_parser.add_argument("--admin-name", help="Display name for the seeded super admin")

    # docmgr run
    run_parser = subparsers.add_parser("run", help="Start the HTTP server")
    run_parser.add_argument("--config", help="Path to docmgr.yaml")
    run_parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default: 0.0.0.0)")
    run_parser.add_argument("--port", type=int, default=5000, help="Port (default: 5000)")
    run_parser.add_argument("--reload", action="store_true", help="Reload on code changes (dev only)")

    # docmgr create-user
    user_parser = subparsers.add_parser("create-user", help="Create a user with a generated login code")
    user_parser.add_argument("name", help="Display name")
    user_parser.add_argument("--role", choices=["user", "super_admin"], default="user", help="Role (default: user)")
    user_parser.add_argument("--config", help="Path to docmgr.yaml")

    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "create-user":
        return cmd_create_user(args)
    else:
        parser.print_help()
        return 0


def _load(config_path: Optional[str]):
    from docmgr.engine.config import load_config

    return load_config(config_path)


def cmd_init(args: argparse.Namespace) -> int:
    """
    Bootstrap the database:
    1. Load config
    2. Create all tables
    3. Seed the super admin and the default folder (skipped once users exist)
    """
    from docmgr.engine.errors import DocMgrError
    from docmgr.engine.runtime import DocMgrRuntime

    print("=" * 60)
    print("  docmgr Initialization")
    print("=" * 60)

    try:
        config = _load(args.config)
        print(f"[OK] Loaded config ({config.environment})")
    except DocMgrError as e:
        print(f"[ERROR] Failed to load config: {e.message}")
        return 1

    if args.admin_code:
        config.security.seed_admin_code = args.admin_code
    if args.admin_name:
        config.security.seed_admin_name = args.admin_name

    runtime = DocMgrRuntime(config)
    try:
        runtime.startup(create_tables=True, seed=False)
        print("[OK] Database tables ready")
        result = runtime.seed_defaults()
    except Exception as e:
        print(f"[ERROR] Initialization failed: {e}")
        return 1
    finally:
        asyncio.run(runtime.shutdown())

    if not result["seeded"]:
        print("[INFO] Already initialized (users exist)")
        return 0

    admin = result["admin"]
    print(f"[OK] Created super admin '{admin.name}'")
    print(f"     Login code: {admin.login_code}")
    if result.get("folder") is not None:
        print(f"[OK] Created folder '{result['folder'].name}'")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the HTTP server."""
    import uvicorn

    from docmgr.engine.config import CONFIG_ENV_VAR

    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    print(f"Starting docmgr on {args.host}:{args.port}...")
    try:
        uvicorn.run(
            "docmgr.api.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    """Create a user and print the generated login code."""
    from docmgr.engine.errors import DocMgrError
    from docmgr.engine.runtime import DocMgrRuntime

    try:
        config = _load(args.config)
    except DocMgrError as e:
        print(f"[ERROR] Failed to load config: {e.message}")
        return 1

    runtime = DocMgrRuntime(config)
    try:
        runtime.startup(seed=False)
        user = runtime.auth.create_user(args.name, args.role)
    except DocMgrError as e:
        print(f"[ERROR] {e.message}")
        return 1
    finally:
        asyncio.run(runtime.shutdown())

    print(f"[OK] Created {user.role} '{user.name}' ({user.id})")
    print(f"     Login code: {user.login_code}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
