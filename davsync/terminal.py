"""Reading credentials from the terminal."""

import click


def read_secret(prompt: str) -> str:
    """Prompt for one line without echoing it.

    click restores the terminal mode on every exit path and still reads
    the line when standard input is not a terminal.
    """
    return click.prompt(prompt, hide_input=True, default="", show_default=False)


def query_password(user: str) -> str:
    return read_secret(f"Password for user {user}")


def query_user() -> str:
    return click.prompt("Please enter user name", default="", show_default=False)
