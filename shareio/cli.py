#!/usr/bin/env python3
"""
ShareIO CLI

Command-line interface for one-time file sharing.

Usage:
    shareio serve                     # Run the share service (HTTP API)
    shareio post FILE [--pass PW]     # Upload a file, print its share code
    shareio get CODE [--pass PW]      # Download a file by share code
    shareio health                    # Check the service is reachable
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import Config, load_config
from .transfer import TransferError, fetch_share_to, unique_path

console = Console()

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB
MIN_PASSWORD_LENGTH = 4
MAX_PASSWORD_LENGTH = 50
MIN_CODE = 1024
MAX_CODE = 65535


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def format_size(bytes_count: float) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def validate_password(ctx, param, value: Optional[str]) -> Optional[str]:
    """click callback: optional password, 4-50 characters."""
    if not value:
        return None
    if len(value) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(f"must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(value) > MAX_PASSWORD_LENGTH:
        raise click.BadParameter(f"must be less than {MAX_PASSWORD_LENGTH} characters long")
    return value


def filename_from_disposition(header: Optional[str], default: str = 'downloaded_file') -> str:
    """Pull the filename out of a Content-Disposition header."""
    if not header:
        return default

    for param in header.split(';')[1:]:
        key, _, value = param.strip().partition('=')
        key = key.lower()
        if key == 'filename*' and "''" in value:
            return Path(unquote(value.split("''", 1)[1])).name or default
        if key == 'filename':
            return Path(value.strip('"')).name or default
    return default


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              help='JSON config file')
@click.option('--backend', help='ShareIO service URL (default from config)')
@click.pass_context
def cli(ctx, verbose, config_path, backend):
    """ShareIO - share a file once, by code, with an optional password."""
    config = load_config(config_path)
    if backend:
        config.backend_url = backend

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host', help='Address to bind the API and share listeners')
@click.option('--port', 'api_port', type=int, help='REST API port')
@click.option('--upload-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Where uploaded files are stored')
@click.option('--accept-timeout', type=float,
              help='Seconds a share waits for its downloader (default: forever)')
@click.pass_context
def serve(ctx, host, api_port, upload_dir, accept_timeout):
    """Run the share service."""
    config: Config = ctx.obj['config']
    if host:
        config.host = host
    if api_port:
        config.api_port = api_port
    if upload_dir:
        config.upload_dir = upload_dir
    if accept_timeout is not None:
        config.accept_timeout = accept_timeout

    console.print(Panel.fit(
        f"[bold green]ShareIO Service[/bold green]\n\n"
        f"API: [yellow]http://{config.host}:{config.api_port}[/yellow]\n"
        f"Share codes: [yellow]{config.code_min}-{config.code_max}[/yellow]\n"
        f"Upload Dir: [blue]{config.upload_dir}[/blue]",
        title="Service Info"
    ))

    from .api import run_api_server

    try:
        asyncio.run(run_api_server(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--pass', '-p', 'password', callback=validate_password,
              help='Password the downloader must supply')
@click.pass_context
def post(ctx, file_path: Path, password):
    """Share a file and print its code."""
    config: Config = ctx.obj['config']

    size = file_path.stat().st_size
    if size > MAX_FILE_SIZE:
        console.print(f"[red]File size ({format_size(size)}) exceeds maximum allowed size "
                      f"({format_size(MAX_FILE_SIZE)})[/red]")
        ctx.exit(1)

    console.print(f"[dim]File:[/dim] [cyan]{file_path.name}[/cyan] ({format_size(size)})")
    if password:
        console.print(f"[dim]Password:[/dim] {'*' * len(password)}")

    data = {'password': password} if password else None

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Uploading...", total=None)
        try:
            with open(file_path, 'rb') as f:
                response = httpx.post(
                    f"{config.backend_url}/upload",
                    files={'file': (file_path.name, f)},
                    data=data,
                    timeout=config.transfer_timeout,
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            console.print(f"[red]✗ Upload failed ({e.response.status_code}): {e.response.text}[/red]")
            ctx.exit(1)
        except httpx.HTTPError as e:
            console.print(f"[red]✗ Upload failed: {e}[/red]")
            console.print("[dim]Make sure the ShareIO service is running[/dim]")
            ctx.exit(1)

    code = response.json()['port']

    console.print(Panel.fit(
        f"[bold green]File Shared Successfully[/bold green]\n\n"
        f"Name: [cyan]{file_path.name}[/cyan]\n"
        f"Size: [yellow]{size:,} bytes[/yellow]\n"
        f"Password: [yellow]{'yes' if password else 'no'}[/yellow]\n\n"
        f"[bold]Share code (one download only):[/bold]\n"
        f"[green]{code}[/green]",
        title="Shared File"
    ))


@cli.command()
@click.argument('code', type=click.IntRange(MIN_CODE, MAX_CODE))
@click.option('--pass', '-p', 'password', callback=validate_password,
              help='Password for a protected share')
@click.option('--output', '-o', type=click.Path(file_okay=False, path_type=Path),
              default=Path('.'), show_default=True, help='Output directory')
@click.option('--direct', metavar='HOST',
              help='Fetch straight from the sender at HOST over TCP, skipping the API')
@click.pass_context
def get(ctx, code: int, password, output: Path, direct):
    """Download a shared file by its code."""
    config: Config = ctx.obj['config']
    output.mkdir(parents=True, exist_ok=True)

    console.print(f"[dim]File code:[/dim] [yellow]{code}[/yellow]")
    console.print(f"[dim]Download to:[/dim] {output.resolve()}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Downloading...", total=None)
        try:
            if direct:
                path = asyncio.run(fetch_share_to(
                    direct, code, output, password=password,
                    timeout=config.transfer_timeout,
                ))
            else:
                path = _download_via_api(config, code, password, output)
        except TransferError as e:
            console.print(f"[red]✗ Download failed: {e}[/red]")
            ctx.exit(1)
        except httpx.HTTPStatusError as e:
            console.print(f"[red]✗ Download failed ({e.response.status_code}): "
                          f"{_error_detail(e.response)}[/red]")
            ctx.exit(1)
        except httpx.HTTPError as e:
            console.print(f"[red]✗ Download failed: {e}[/red]")
            ctx.exit(1)

    console.print(f"\n[green]✓ Downloaded to: {path}[/green]")


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get('detail', response.text)
    except ValueError:
        return response.text


def _download_via_api(config: Config, code: int, password: Optional[str], output: Path) -> Path:
    params = {'pass': password} if password else None

    with httpx.stream(
        'GET',
        f"{config.backend_url}/download/{code}",
        params=params,
        timeout=config.transfer_timeout,
    ) as response:
        if response.is_error:
            response.read()
            response.raise_for_status()

        filename = filename_from_disposition(response.headers.get('content-disposition'))
        path = unique_path(output, filename)
        with open(path, 'wb') as f:
            for chunk in response.iter_bytes():
                f.write(chunk)

    return path


@cli.command()
@click.pass_context
def health(ctx):
    """Check whether the share service is reachable."""
    config: Config = ctx.obj['config']

    try:
        response = httpx.get(f"{config.backend_url}/health", timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Service unavailable: {e}[/red]")
        console.print("[dim]Make sure the ShareIO service is running[/dim]")
        ctx.exit(1)

    console.print(f"[green]✓ {response.json().get('message', 'Service is available')}[/green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
