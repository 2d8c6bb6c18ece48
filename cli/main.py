#!/usr/bin/env python3
"""
SandboxForge CLI - Main Entry Point

Usage:
    sandboxforge serve                               # Run the API server
    sandboxforge generate "build a todo app"         # Stream a new generation
    sandboxforge generate -s SANDBOX_ID -f "add auth" # Follow-up in a sandbox
    sandboxforge delete SANDBOX_ID                   # Remove a sandbox
"""

import argparse
import asyncio
import sys

import httpx
from dotenv import load_dotenv
from rich.console import Console

from cli.client import APIError, SandboxForgeClient
from cli.config import CLIConfig
from cli.renderer import EventRenderer


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="sandboxforge",
        description="SandboxForge - stream AI project generation running in remote sandboxes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sandboxforge serve --port 8000
  sandboxforge generate "create a React todo app"
  sandboxforge generate -m chatgpt "landing page for a bakery"
  sandboxforge generate -s 1b2c... -f "make the header sticky"
  sandboxforge delete 1b2c...

Press Ctrl+C during a generation to stop it; the server stops the worker.
"""
    )
    parser.add_argument(
        "--server-url",
        help="API base URL (default: $SANDBOXFORGE_API_URL or http://localhost:8000/api/v1)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show unknown events")

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", help="Bind address (default: SERVER_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: SERVER_PORT)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    generate_parser = subparsers.add_parser("generate", help="Generate or continue a project")
    generate_parser.add_argument("prompt", help="What to build")
    generate_parser.add_argument("--sandbox-id", "-s", help="Existing sandbox to work in")
    generate_parser.add_argument(
        "--follow-up", "-f", action="store_true",
        help="Treat the prompt as a follow-up edit (requires --sandbox-id)"
    )
    generate_parser.add_argument("--model", "-m", help="Agent backend: claude, chatgpt, lovable")
    generate_parser.add_argument(
        "--output-format", "-o", choices=["text", "json"], default="text",
        help="Render events as text or raw JSON"
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a sandbox")
    delete_parser.add_argument("sandbox_id", help="Sandbox to delete")
    delete_parser.add_argument("--user-id", help="User on whose behalf the sandbox is deleted")

    return parser


def run_server(args) -> int:
    import uvicorn
    from sandboxforge.core.config import settings

    uvicorn.run(
        "sandboxforge.main:app",
        host=args.host or settings.SERVER_HOST,
        port=args.port or settings.SERVER_PORT,
        reload=args.reload,
    )
    return 0


async def run_generate(args, client: SandboxForgeClient, config: CLIConfig, console: Console) -> int:
    renderer = EventRenderer(console, config)

    try:
        async for event in client.generate(
            args.prompt,
            sandbox_id=args.sandbox_id,
            follow_up=args.follow_up,
            model=args.model,
        ):
            renderer.render(event)
    except APIError as e:
        renderer.render_error(e.message, details=f"HTTP {e.status_code}")
        return 1
    except httpx.TransportError as e:
        renderer.render_error(f"Cannot reach {config.api_base_url}", details=str(e))
        return 1

    if renderer.failed:
        return 1
    if renderer.preview_url is None:
        renderer.render_info("Generation stopped")
        return 1
    return 0


async def cancel_generation(client: SandboxForgeClient, console: Console) -> bool:
    """Ask the server to stop the interrupted session, if it is still open"""
    if not client.session_id:
        return False
    try:
        cancelled = await client.cancel(client.session_id)
    except APIError as e:
        # 404: the server already ended the session when the stream closed
        console.print(f"[dim]Session {client.session_id} already closed (HTTP {e.status_code})[/dim]")
        return False
    except httpx.TransportError as e:
        console.print(f"[dim]Could not reach the server to cancel: {e}[/dim]")
        return False
    return cancelled


async def run_delete(args, config: CLIConfig, console: Console) -> int:
    client = SandboxForgeClient(config)
    renderer = EventRenderer(console, config)
    try:
        result = await client.delete_sandbox(args.sandbox_id, user_id=args.user_id)
    except APIError as e:
        renderer.render_error(e.message, details=f"HTTP {e.status_code}")
        return 1
    except httpx.TransportError as e:
        renderer.render_error(f"Cannot reach {config.api_base_url}", details=str(e))
        return 1
    renderer.render_success(result.get("message", "Sandbox deleted"))
    return 0


def main():
    """Main entry point"""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    if args.command == "serve":
        sys.exit(run_server(args))

    console = Console()
    config = CLIConfig.load_default()
    if args.server_url:
        config.api_base_url = args.server_url
    config.verbose = args.verbose or config.verbose

    client = SandboxForgeClient(config)
    try:
        if args.command == "generate":
            config.output_format = args.output_format
            code = asyncio.run(run_generate(args, client, config, console))
        else:
            code = asyncio.run(run_delete(args, config, console))
    except KeyboardInterrupt:
        asyncio.run(cancel_generation(client, console))
        console.print("\n[yellow]Interrupted - generation cancelled[/yellow]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
