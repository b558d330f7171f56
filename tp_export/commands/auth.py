"""Authentication commands."""

from __future__ import annotations

from typing import Optional

import typer

from tp_export.commands.common import get_state, print_json_payload, status
from tp_export.core.api import APIError, TrainingPeaksAPI
from tp_export.core.auth import AuthError, TrainingPeaksAuth
from tp_export.core.config import api_client_kwargs

app = typer.Typer(help="Authenticate with TrainingPeaks")


@app.command("login")
def login_command(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, help="TrainingPeaks username", envvar="TP_USERNAME"),
    password: Optional[str] = typer.Option(None, help="TrainingPeaks password", envvar="TP_PASSWORD"),
    force: bool = typer.Option(False, "--force", help="Force re-authentication"),
) -> None:
    """Authenticate and cache session cookies."""
    state = get_state(ctx)
    base_url = state.trainingpeaks_base_url
    auth = TrainingPeaksAuth(config=state.config, username=username, password=password, base_url=base_url)

    try:
        with status(state, "Authenticating..."):
            token, _ = auth.login(force=force)
            user_info = TrainingPeaksAPI(token=token, base_url=base_url, **api_client_kwargs(state.config)).get_user()
    except (AuthError, APIError) as exc:
        if state.json_output:
            print_json_payload(state, {"status": "error", "message": str(exc)})
        elif state.plain_output:
            typer.echo("status\terror")
            typer.echo(f"message\t{exc}")
        else:
            state.console.print(f"Login failed: {exc}")
        raise typer.Exit(code=1)

    user = user_info.get("user", {})
    payload = {
        "status": "success",
        "authenticated": True,
        "user": {
            "userId": user.get("userId"),
            "username": user.get("username"),
            "email": user.get("email"),
        },
    }

    if state.json_output:
        print_json_payload(state, payload)
        return

    if state.plain_output:
        typer.echo("status\tsuccess")
        typer.echo(f"user_id\t{payload['user']['userId']}")
        typer.echo(f"username\t{payload['user']['username']}")
        return

    state.console.print("Login successful")
    state.console.print(f"User: {payload['user']['username']} ({payload['user']['userId']})")


@app.command("logout")
def logout_command(ctx: typer.Context) -> None:
    """Delete cached local credentials."""
    state = get_state(ctx)
    removed = TrainingPeaksAuth(config=state.config).logout()

    if state.json_output:
        print_json_payload(
            state,
            {
                "status": "success",
                "logged_out": bool(removed),
                "message": "Local cookie cache removed" if removed else "No cached cookie file",
            },
        )
        return

    if state.plain_output:
        typer.echo("status\tsuccess")
        typer.echo(f"logged_out\t{str(bool(removed)).lower()}")
        return

    if removed:
        state.console.print("Local cookie cache removed")
    else:
        state.console.print("No local cookie cache found")
