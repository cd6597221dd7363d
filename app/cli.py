"""
AI Studio CLI Tool

Command-line interface for running and administering the API and for
generating videos against a running server.

Usage:
    studio serve                    - Start the API server
    studio create-admin EMAIL       - Create (or promote) an administrator
    studio users                    - List all users
    studio set-user EMAIL           - Change a user's status and/or credits
    studio video "prompt"           - Generate a video and download it
"""
import asyncio
import base64
import mimetypes
import os
import sys
import time
from pathlib import Path

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from app import __version__

# Load environment variables
load_dotenv()

console = Console()

# API Configuration
API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")


def start_server(port=8000, reload=False):
    """Start the FastAPI server in the foreground."""
    import subprocess

    cmd = [sys.executable, "-m", "uvicorn", "app.main:app", f"--port={port}"]
    if reload:
        cmd.append("--reload")
    subprocess.run(cmd)


def _fail(message: str):
    console.print(f"[red]✗ {message}[/red]")
    sys.exit(1)


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text


@click.group()
@click.version_option(version=__version__, prog_name="AI Studio")
def main():
    """
    AI Studio - credit-metered image, ad and video generation.
    """
    pass


@main.command()
@click.option("--port", default=8000, help="Port to run server on")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(port: int, reload: bool):
    """
    Start the API server.

    Example:
        studio serve --port 8000
    """
    console.print(Panel(
        f"API: [cyan]http://localhost:{port}/api[/cyan]\nDocs: [cyan]http://localhost:{port}/docs[/cyan]",
        title="AI Studio API",
        border_style="cyan",
    ))
    start_server(port=port, reload=reload)


# --- Local administration (talks to the database directly) ---

async def _create_admin(email: str, password: str) -> str:
    from app.auth.passwords import hash_password
    from app.database import close_db, get_session, init_db
    from app.models import UserRole, UserStatus
    from app.users.repository import SQLUserRepository

    await init_db()
    try:
        async with get_session() as session:
            repo = SQLUserRepository(session)
            existing = await repo.find_by_email(email)
            if existing is not None:
                await repo.update(existing.id, status=UserStatus.APPROVED, role=UserRole.ADMIN)
                return "promoted"
            await repo.create(
                email, hash_password(password), status=UserStatus.APPROVED, role=UserRole.ADMIN
            )
            return "created"
    finally:
        await close_db()


async def _list_users():
    from app.database import close_db, get_session, init_db
    from app.users.repository import SQLUserRepository

    await init_db()
    try:
        async with get_session() as session:
            return await SQLUserRepository(session).list_all()
    finally:
        await close_db()


async def _set_user(email: str, status, credits):
    from app.database import close_db, get_session, init_db
    from app.errors import NotFound
    from app.users.moderation import apply_user_update
    from app.users.repository import SQLUserRepository

    await init_db()
    try:
        async with get_session() as session:
            user = await SQLUserRepository(session).find_by_email(email)
        if user is None:
            raise NotFound(f"No user with email {email}.")
        return await apply_user_update(
            user.id, status=status, credits=credits, description="Set via CLI"
        )
    finally:
        await close_db()


@main.command("create-admin")
@click.argument("email")
@click.password_option(help="Admin password")
def create_admin(email: str, password: str):
    """
    Create an approved administrator, or promote an existing user.

    Example:
        studio create-admin admin@example.com
    """
    from app.errors import AppError

    try:
        outcome = asyncio.run(_create_admin(email, password))
    except AppError as e:
        _fail(e.message)
    console.print(f"[green]✓[/green] Admin {email} {outcome}")


@main.command()
def users():
    """
    List all users.

    Example:
        studio users
    """
    records = asyncio.run(_list_users())
    if not records:
        console.print("[yellow]No users yet.[/yellow]")
        return

    table = Table(title=f"Users ({len(records)} total)", show_header=True, header_style="bold cyan")
    table.add_column("Email", style="cyan")
    table.add_column("Status")
    table.add_column("Role")
    table.add_column("Credits", justify="right")
    table.add_column("Created", style="dim")

    status_styles = {"approved": "green", "pending": "yellow", "rejected": "red"}
    for user in records:
        style = status_styles.get(user.status.value, "white")
        table.add_row(
            user.email,
            f"[{style}]{user.status.value}[/{style}]",
            user.role.value,
            f"{user.credits}",
            user.created_at.strftime("%Y-%m-%d %H:%M") if user.created_at else "",
        )
    console.print(table)


@main.command("set-user")
@click.argument("email")
@click.option("--status", type=click.Choice(["pending", "approved", "rejected"]), help="New status")
@click.option("--credits", type=str, help="New absolute credit balance")
def set_user(email: str, status: str | None, credits: str | None):
    """
    Change a user's status and/or credit balance.

    Example:
        studio set-user someone@example.com --status approved --credits 10
    """
    from app.errors import AppError
    from app.ledger.credits import to_credits
    from app.models import UserStatus

    if status is None and credits is None:
        _fail("Nothing to change: pass --status and/or --credits")

    try:
        amount = to_credits(credits) if credits is not None else None
        user = asyncio.run(
            _set_user(email, UserStatus(status) if status else None, amount)
        )
    except AppError as e:
        _fail(e.message)

    console.print(
        f"[green]✓[/green] {user.email}: status={user.status.value} credits={user.credits}"
    )


# --- Remote video generation (talks to a running server) ---

def _login(client: httpx.Client, email: str, password: str) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    if response.status_code != 200:
        _fail(f"Login failed: {_error_message(response)}")
    token = response.cookies.get("auth_token")
    if not token:
        _fail("Login succeeded but no session cookie was returned")
    return token


def _image_payload(path: Path) -> dict:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
    return {"base64": base64.b64encode(path.read_bytes()).decode("ascii"), "mimeType": mime_type}


@main.command()
@click.argument("prompt")
@click.option("--email", envvar="STUDIO_EMAIL", required=True, help="Account email")
@click.option("--password", envvar="STUDIO_PASSWORD", required=True, prompt=True, hide_input=True)
@click.option("--image", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Optional start image")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=Path("video.mp4"), show_default=True)
def video(prompt: str, email: str, password: str, image: Path | None, output: Path):
    """
    Generate a video (5 credits), wait for it and download it.

    Polling backs off exponentially and gives up after the configured
    number of attempts; the server refunds failed jobs.

    Example:
        studio video "a paper boat drifting down a rainy street" --email me@example.com
    """
    from app.config import get_settings
    from app.jobs.video import poll_interval

    settings = get_settings()

    with httpx.Client(base_url=API_BASE, timeout=60.0) as client:
        token = _login(client, email, password)
        client.headers["Authorization"] = f"Bearer {token}"
        client.cookies.clear()

        body: dict = {"prompt": prompt}
        if image is not None:
            body["image"] = _image_payload(image)

        response = client.post("/api/generate-video", json=body)
        if response.status_code != 202:
            _fail(_error_message(response))
        data = response.json()
        operation_name = data["operationName"]
        console.print(f"[green]✓[/green] Video job started ({data['credits']} credits left)")
        console.print(f"Operation: [cyan]{operation_name}[/cyan]")

        video_uri = None
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Processing video...", total=None)
            waited = 0.0

            for attempt in range(1, settings.VIDEO_POLL_MAX_ATTEMPTS + 1):
                wait = poll_interval(attempt, settings)
                time.sleep(wait)
                waited += wait

                response = client.get("/api/video-status", params={"operationName": operation_name})
                if response.status_code != 200:
                    _fail(f"Polling error: {_error_message(response)}")
                status = response.json()

                if status.get("done"):
                    videos = (status.get("response") or {}).get("generatedVideos") or []
                    if not videos:
                        message = (status.get("error") or {}).get("message", "No video was produced")
                        _fail(f"{message} (credits refunded)")
                    video_uri = videos[0]["video"]["uri"]
                    progress.update(task, description="[green]Complete![/green]")
                    break

                progress.update(task, description=f"Still processing... ({int(waited)}s)")
            else:
                _fail("Gave up waiting for the video")

        with client.stream("GET", "/api/download-video", params={"uri": video_uri}) as download:
            if download.status_code != 200:
                download.read()
                _fail(f"Download failed: {_error_message(download)}")
            with output.open("wb") as f:
                for chunk in download.iter_bytes():
                    f.write(chunk)

    console.print(f"\n[green]✓ Video saved to[/green] [cyan]{output}[/cyan]")


if __name__ == "__main__":
    main()
