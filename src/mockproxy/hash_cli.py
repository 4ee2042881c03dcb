"""
Print the content hash used in body-specific fixture filenames.

    echo '{"b": 2, "a": 1}' | mockproxy-hash
    curl -s ... | mockproxy-hash --text

JSON input is canonicalized before hashing, exactly as the server does for a
JSON request body. With --text (or when stdin is not JSON) the input is hashed
as a text/plain body.
"""

import json
import sys

import typer

from mockproxy.utils.fixture_key import body_hash

app = typer.Typer(
    name="mockproxy-hash",
    help="Print the content hash used in body-specific fixture filenames.",
    add_completion=False,
)


@app.command()
def hash_body(
    text: bool = typer.Option(False, "--text", help="Treat stdin as a text/plain body"),
):
    """Hash the request body read from stdin."""
    raw = sys.stdin.read()
    body = raw
    if not text:
        try:
            body = json.loads(raw)
        except ValueError:
            body = raw

    digest = body_hash(body)
    if digest is None:
        typer.echo("empty body: requests without a body use the generic fixture", err=True)
        raise typer.Exit(1)
    typer.echo(digest)


def main():
    app()


if __name__ == "__main__":
    main()
