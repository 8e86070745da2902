import asyncio
import json
import logging
from typing import Callable, List, NoReturn, Optional, Tuple, TypeVar

import typer
from rich import print
from rich.table import Table

from mindmap.config import Settings
from mindmap.core.api_client import ApiError, AuthFailed, MindmapClient, Unauthorized
from mindmap.core.graph_store import GraphStore
from mindmap.core.models import PALETTE
from mindmap.core.session import Session, SessionStore
from mindmap.core.sync import SyncBridge
from mindmap.core.view import ViewController

logger = logging.getLogger(__name__)

T = TypeVar("T")

APP_HELP = """
mindmap: a personal mind map of linked notes, stored on your Mind Map server.

Log in once, then add notes, link them together, search by tag or text and
lay the graph out. Every change is saved to the server before the command
exits.

CORE WORKFLOW:
1. ACCOUNT: `mindmap register <name>` then `mindmap login <name>`.
2. NOTES:   `mindmap node add "Idea" --tag project --color "#ff6b6b"`.
3. LINKS:   `mindmap link add note1 note2`.
4. BROWSE:  `mindmap show --search project` or `mindmap layout`.
"""

app = typer.Typer(name="mindmap", help=APP_HELP, no_args_is_help=True)
node_app = typer.Typer(name="node", help="Create, edit and delete notes.")
link_app = typer.Typer(name="link", help="Connect and disconnect notes.")
app.add_typer(node_app, name="node")
app.add_typer(link_app, name="link")

state = {"settings": None}


def get_settings() -> Settings:
    if state["settings"] is None:
        state["settings"] = Settings()
    return state["settings"]


def _session_store() -> SessionStore:
    return SessionStore(get_settings().session_path)


def _client(settings: Settings) -> MindmapClient:
    return MindmapClient(settings.server_url, timeout=settings.request_timeout_seconds)


def _require_session() -> Session:
    session = _session_store().load()
    if session is None:
        print("[red]Not logged in.[/red] Run: mindmap login <username>")
        raise typer.Exit(code=1)
    return session


def _fail(error: ApiError) -> NoReturn:
    if isinstance(error, Unauthorized):
        _session_store().clear()
        print("[red]Session expired or invalid.[/red] Run: mindmap login <username>")
    else:
        print(f"[red]Error: {error.message}[/red]")
    raise typer.Exit(code=1)


def _edit(action: Callable[[ViewController], T]) -> T:
    """Load the graph, apply action through a ViewController and wait for the save."""
    settings = get_settings()
    session = _require_session()

    async def run() -> Tuple[T, Optional[ApiError]]:
        async with _client(settings) as api:
            store = GraphStore(settings.id_prefix)
            bridge = SyncBridge(
                store,
                api,
                max_retries=settings.save_max_retries,
                backoff_seconds=settings.save_backoff_seconds,
            )
            if not await bridge.start(session):
                return None, bridge.last_error
            view = ViewController(
                store,
                width=settings.canvas_width,
                height=settings.canvas_height,
                confirmation_seconds=settings.confirmation_seconds,
                layout_iterations=settings.layout_iterations,
            )
            result = action(view)
            await bridge.flush()
            return result, bridge.last_error

    result, error = asyncio.run(run())
    if error is not None:
        _fail(error)
    return result


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log sync activity to stderr."),
):
    """
    Mind Map CLI.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# =============================================================================
# Account
# =============================================================================

@app.command()
def register(
    username: str = typer.Argument(..., help="Account name"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Create an account on the server."""
    async def do_register() -> str:
        async with _client(get_settings()) as api:
            return await api.register(username, password)

    try:
        message = asyncio.run(do_register())
    except ApiError as e:
        _fail(e)
    print(f"[green]{message}[/green]")
    print(f"[dim]Next: mindmap login {username}[/dim]")


@app.command()
def login(
    username: str = typer.Argument(..., help="Account name"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
):
    """Log in and remember the session for later commands."""
    async def do_login() -> Session:
        async with _client(get_settings()) as api:
            return await api.login(username, password)

    try:
        session = asyncio.run(do_login())
    except AuthFailed as e:
        # A failed login never leaves an old session behind
        _session_store().clear()
        print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)
    except ApiError as e:
        _fail(e)
    _session_store().save(session)
    print(f"[bold green]Logged in as[/bold green] {session.username}")


@app.command()
def logout():
    """Forget the local session. Nothing stored on the server is touched."""
    _session_store().clear()
    print("[green]Logged out[/green]")


@app.command()
def whoami(json_output: bool = typer.Option(False, "--json", help="Output as JSON")):
    """Show the account the current session belongs to."""
    session = _require_session()

    async def do_me() -> dict:
        async with _client(get_settings()) as api:
            return await api.me(session)

    try:
        account = asyncio.run(do_me())
    except ApiError as e:
        _fail(e)
    if json_output:
        typer.echo(json.dumps(account))
        return
    print(f"[cyan]{account.get('username')}[/cyan] (id: {account.get('userId')})")


# =============================================================================
# Browsing
# =============================================================================

@app.command()
def show(
    search: str = typer.Option(None, "--search", "-s", help="Only notes whose tags or text contain this (a leading # is ignored)."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List notes and the links between them."""
    def collect(view: ViewController):
        view.set_search(search)
        rows = [(node, view.store.degree(node.id)) for node in view.visible_nodes()]
        return rows, view.visible_links()

    rows, links = _edit(collect)
    if json_output:
        typer.echo(json.dumps({
            "nodes": [node.model_dump(exclude={"user_id", "x", "y"}) for node, _ in rows],
            "links": [{"source": link.source, "target": link.target} for link in links],
        }))
        return

    table = Table(title="Notes" if not search else f"Notes matching '{search}'")
    table.add_column("ID", style="cyan")
    table.add_column("Content")
    table.add_column("Tags", style="magenta")
    table.add_column("Color")
    table.add_column("Links", justify="right")
    for node, degree in rows:
        color = node.color or PALETTE[0]
        table.add_row(
            node.id,
            node.content,
            " ".join(f"#{tag}" for tag in node.tags),
            f"[{color}]{color}[/]",
            str(degree),
        )
    print(table)
    if links:
        print("\n[bold]Links:[/bold]")
        for link in links:
            print(f"  {link.source} <-> {link.target}")


@app.command()
def layout(
    search: str = typer.Option(None, "--search", "-s", help="Lay out only the matching notes."),
    iterations: int = typer.Option(None, "--iterations", "-i", help="Simulation steps (default from settings)."),
):
    """Run the force layout and print where each note lands on the canvas."""
    def render(view: ViewController):
        view.set_search(search)
        return view.render(iterations)

    frame = _edit(render)
    table = Table(title="Layout")
    table.add_column("ID", style="cyan")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Radius", justify="right")
    for node in frame.nodes:
        table.add_row(node.id, f"{node.x:.1f}", f"{node.y:.1f}", f"{node.radius:.0f}")
    print(table)


# =============================================================================
# Notes
# =============================================================================

@node_app.command("add")
def node_add(
    content: str = typer.Argument("", help="Note text"),
    tags: List[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable, leading # optional)"),
    color: str = typer.Option(None, "--color", "-c", help=f"One of: {', '.join(PALETTE)}"),
    node_id: str = typer.Option(None, "--id", help="Explicit id instead of the next free one"),
):
    """Create a note."""
    if color is not None and color not in PALETTE:
        print(f"[red]Error: color must be one of {', '.join(PALETTE)}[/red]")
        raise typer.Exit(code=1)

    def create(view: ViewController):
        view.panel.content = content
        for tag in tags or []:
            view.panel.add_tag(tag)
        if color is not None:
            view.panel.choose_color(color)
        node = view.commit_create(node_id)
        return node, view.confirmation

    node, confirmation = _edit(create)
    if node is None:
        print(f"[red]Error: id '{node_id}' is blank or already taken[/red]")
        raise typer.Exit(code=1)
    print(f"[bold green]{confirmation or node.id + ' created'}[/bold green]")


@node_app.command("rm")
def node_rm(node_id: str = typer.Argument(..., help="Note id")):
    """Delete a note and every link touching it."""
    def remove(view: ViewController) -> bool:
        return view.click_node(node_id) and view.delete_selected()

    if not _edit(remove):
        print(f"[yellow]No note named '{node_id}'[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]Deleted {node_id}[/green]")


@node_app.command("edit")
def node_edit(
    node_id: str = typer.Argument(..., help="Note id"),
    content: str = typer.Argument(..., help="New text"),
):
    """Replace a note's text."""
    def edit(view: ViewController) -> bool:
        if not view.click_node(node_id) or not view.begin_edit():
            return False
        view.update_draft(content)
        return view.save_edit()

    if not _edit(edit):
        print(f"[yellow]No note named '{node_id}'[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]Updated {node_id}[/green]")


@node_app.command("info")
def node_info(node_id: str = typer.Argument(..., help="Note id")):
    """Show one note with its links."""
    def inspect(view: ViewController):
        view.click_node(node_id)
        return view.detail()

    detail = _edit(inspect)
    if detail is None:
        print(f"[yellow]No note named '{node_id}'[/yellow]")
        raise typer.Exit(code=1)
    print(f"[bold cyan]{detail.id}[/bold cyan] {detail.content}")
    if detail.tags:
        print(f"  Tags: {' '.join('#' + tag for tag in detail.tags)}")
    print(f"  Color: {detail.color or PALETTE[0]}")
    print(f"  Links: {', '.join(detail.links) if detail.links else '[dim]none[/dim]'}")


# =============================================================================
# Links
# =============================================================================

@link_app.command("add")
def link_add(
    source: str = typer.Argument(..., help="Note id"),
    target: str = typer.Argument(..., help="Note id to link to"),
):
    """Link two notes."""
    def connect(view: ViewController) -> Optional[str]:
        if not view.click_node(source):
            return f"No note named '{source}'"
        view.set_link_draft(target)
        if view.commit_link():
            return None
        return view.link_error

    error = _edit(connect)
    if error:
        print(f"[red]{error}[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Linked {source} <-> {target}[/green]")


@link_app.command("rm")
def link_rm(
    source: str = typer.Argument(..., help="Note id"),
    target: str = typer.Argument(..., help="Linked note id"),
):
    """Remove the link between two notes (either direction)."""
    def disconnect(view: ViewController) -> bool:
        return view.click_node(source) and view.remove_incident_link(target)

    if not _edit(disconnect):
        print(f"[yellow]'{source}' and '{target}' are not linked[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]Unlinked {source} <-> {target}[/green]")


if __name__ == "__main__":
    app()
