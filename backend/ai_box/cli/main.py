"""CLI entrypoint for AI Box."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Optional

import orjson
import requests
import typer

from ai_box.llm.sse import SSEFrameReader

app = typer.Typer(name="aibox", help="AI Box command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8765"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("AIBOX_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _fail(resp: requests.Response) -> None:
    try:
        detail = resp.json()
    except ValueError:
        detail = resp.text
    typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
    raise typer.Exit(code=1)


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=kwargs.pop("timeout", 60), **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Could not reach {base}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not resp.ok:
        _fail(resp)
    return resp


def _print_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    model: str = typer.Option(..., "--model", "-m", help="Prefixed model id, e.g. ollama/llama3"),
    conversation: Optional[str] = typer.Option(None, "--conversation", "-c", help="Continue this conversation"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Print the reply as it arrives"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Send a message and print the assistant's reply."""
    if conversation is None:
        title = message if len(message) <= 40 else message[:40] + "..."
        created = _request("POST", "/conversations", host=host, json={"title": title, "model": model})
        conversation = created.json()["id"]
        typer.echo(f"conversation: {conversation}", err=True)

    body = {"content": message, "model": model, "stream": stream}
    path = f"/conversations/{conversation}/messages"
    if not stream:
        resp = _request("POST", path, host=host, json=body, timeout=180)
        typer.echo(resp.json()["content"])
        return

    resp = _request("POST", path, host=host, json=body, stream=True, timeout=(10, 180))
    reader = SSEFrameReader()
    with resp:
        for raw in resp.iter_content(chunk_size=None):
            for payload in reader.feed(raw):
                if _print_frame(payload):
                    typer.echo("")
                    return
        for payload in reader.flush():
            _print_frame(payload)
    typer.echo("")


def _print_frame(payload: str) -> bool:
    """Print one streamed frame; returns ``True`` once the stream is finished."""
    try:
        frame = orjson.loads(payload)
    except orjson.JSONDecodeError:
        return False
    if frame.get("error"):
        typer.echo("")
        typer.echo(f"Stream failed ({frame.get('kind')}): {frame['error']}", err=True)
        raise typer.Exit(code=1)
    delta = frame.get("delta") or ""
    if delta:
        typer.echo(delta, nl=False)
    return bool(frame.get("done"))


@app.command()
def models(
    copilot: bool = typer.Option(False, "--copilot", help="List GitHub Copilot models instead"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List models available to the configured providers."""
    resp = _request("GET", "/copilot/models" if copilot else "/models", host=host)
    for model in resp.json():
        typer.echo(f"{model['id']:<45} {model['name']} ({model['provider']})")


@app.command()
def upload(
    path: Path = typer.Argument(..., help="txt, md or pdf file"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Add a document to the knowledge base."""
    resp = _request("POST", "/documents", host=host, json={"path": str(path.expanduser().resolve())}, timeout=300)
    payload = resp.json()
    if payload.get("warning"):
        typer.echo(f"warning: {payload['warning']}", err=True)
    _print_json(payload)


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", help="Number of results to return"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Semantic search over uploaded documents."""
    body: dict[str, object] = {"query": query}
    if top_k is not None:
        body["top_k"] = top_k
    resp = _request("POST", "/search", host=host, json=body)
    _print_json(resp.json())


@app.command()
def login(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Log in to GitHub Copilot with the device authorization flow."""
    device = _request("POST", "/copilot/login", host=host).json()
    typer.echo(f"Open {device['verification_uri']} and enter the code {device['user_code']}")
    interval = max(int(device.get("interval") or 5), 1)
    deadline = time.monotonic() + int(device.get("expires_in") or 900)
    while time.monotonic() < deadline:
        time.sleep(interval)
        poll = _request("POST", "/copilot/login/poll", host=host, json={"device_code": device["device_code"]})
        if poll.json()["status"] == "complete":
            typer.echo("Logged in to GitHub Copilot.")
            return
    typer.echo("Device code expired before authorization completed.", err=True)
    raise typer.Exit(code=1)


@app.command("set")
def set_setting(
    key: str = typer.Argument(..., help="Setting key, e.g. openai_api_key"),
    value: str = typer.Argument(..., help="Setting value"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Store a setting such as an API key or default model."""
    _request("PUT", f"/settings/{key}", host=host, json={"value": value})
    typer.echo(json.dumps({"status": "ok"}))


if __name__ == "__main__":
    app()
