import base64
import json
import mimetypes
from pathlib import Path
from typing import List, Optional

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from api.config.settings import get_settings
from api.models.report_models import Location, Report, ReportCreate, ReportSort, ReportStatus
from api.services.errors import ServiceError
from api.services.report_service import filter_reports
from api.utils.geo_utils import calculate_distance_meters
from grofvuil.client.api_client import ApiClient, ApiError
from grofvuil.client.local_store import LocalReportStore, SessionStore
from grofvuil.client.report_state import ReportState, ReportStateError, sign_in
from grofvuil.settings import get_client_settings

app = typer.Typer(help="Report bulky waste and follow it until it is collected")
console = Console()

STATUS_STYLES = {
    ReportStatus.REPORTED: "yellow",
    ReportStatus.IN_PROGRESS: "blue",
    ReportStatus.COLLECTED: "green",
}


def _session_store() -> SessionStore:
    return SessionStore(get_client_settings().session_file)


def _api(token: Optional[str] = None) -> ApiClient:
    settings = get_client_settings()
    return ApiClient(settings.api_url, token=token, timeout=settings.timeout)


def _state() -> ReportState:
    """Build the report state for the stored session and load the reports."""
    settings = get_client_settings()
    session = _session_store().load()
    state = ReportState(
        _api(session.access_token if session else None),
        LocalReportStore(settings.reports_file),
        session=session,
    )
    state.refresh()
    if state.offline:
        console.print("[yellow]Server unreachable, showing locally stored reports")
    return state


def _fail(message: str, detail: Optional[str] = None) -> None:
    console.print(f"[bold red]{message}")
    if detail:
        console.print(detail, style="red", markup=False)
    raise typer.Exit(code=1)


def _run(action):
    """Run a state action and turn known errors into a clean exit."""
    try:
        return action()
    except ServiceError as e:
        _fail(e.message)
    except ReportStateError as e:
        _fail(e.message, e.detail)


def _reports_table(title: str, reports: List[Report], distances: Optional[dict] = None) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Address")
    table.add_column("Status")
    table.add_column("Reporter")
    table.add_column("Created", style="dim")
    if distances is not None:
        table.add_column("Distance", justify="right")

    for report in reports:
        style = STATUS_STYLES[report.status]
        row = [
            report.id,
            report.type,
            report.address or "-",
            f"[{style}]{report.status.value}[/]",
            report.user_name,
            report.created_at.strftime("%Y-%m-%d %H:%M"),
        ]
        if distances is not None:
            row.append(f"{distances[report.id]:.2f} km")
        table.add_row(*row)
    return table


@app.command()
def login(
    email: str = typer.Option(..., prompt=True, help="Account e-mail"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password"),
):
    """
    Sign in and remember the session.
    """
    with _api() as api:
        try:
            session = sign_in(api, email, password)
        except ApiError as e:
            _fail("Sign-in failed", e.message)
        except ReportStateError as e:
            _fail(e.message)

    _session_store().save(session)
    mode = " (local session)" if session.access_token.startswith("local-token-") else ""
    console.print(f"[green]Signed in as [bold]{session.user.name}[/] ({session.user.role.value}){mode}")


@app.command()
def logout():
    """Forget the stored session."""
    _session_store().clear()
    console.print("[green]Signed out")


@app.command()
def signup(
    email: str = typer.Option(..., prompt=True),
    name: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Create a new account."""
    with _api() as api:
        try:
            body = api.sign_up(email, password, name)
        except ApiError as e:
            _fail("Sign-up failed", e.message)
        except httpx.RequestError as e:
            _fail(f"Cannot reach the server: {e}")
    console.print(f"[green]Account created for [bold]{body['user']['email']}[/], you can now log in")


@app.command()
def whoami():
    """Show the signed-in user."""
    session = _session_store().load()
    if session is None:
        _fail("Not signed in")
    user = session.user
    console.print(f"[bold]{user.name}[/] <{user.email}> role={user.role.value}")
    if user.neighborhood:
        console.print(f"Neighborhood: {user.neighborhood}")


@app.command()
def profile(
    name: Optional[str] = typer.Option(None, help="New display name"),
    avatar: Optional[str] = typer.Option(None, help="Avatar identifier"),
    neighborhood: Optional[str] = typer.Option(None, help="Home neighborhood"),
):
    """Update the profile of the signed-in user."""
    store = _session_store()
    session = store.load()
    if session is None:
        _fail("Not signed in")

    fields = {k: v for k, v in {"name": name, "avatar": avatar, "neighborhood": neighborhood}.items() if v is not None}
    if not fields:
        _fail("Nothing to update")

    with _api(session.access_token) as api:
        try:
            user = api.update_profile(**fields)
        except ApiError as e:
            _fail("Profile update failed", e.message)
        except httpx.RequestError as e:
            _fail(f"Cannot reach the server: {e}")

    store.save(session.model_copy(update={"user": session.user.model_validate(user)}))
    console.print("[green]Profile updated")


@app.command("list")
def list_reports(
    status: Optional[ReportStatus] = typer.Option(None, help="Only this status"),
    type: Optional[str] = typer.Option(None, "--type", help="Only this waste type"),
    search: Optional[str] = typer.Option(None, help="Search address and type"),
    lat: Optional[float] = typer.Option(None, help="Your latitude"),
    lng: Optional[float] = typer.Option(None, help="Your longitude"),
    radius_km: Optional[float] = typer.Option(None, help="Only reports within this distance"),
    nearby: bool = typer.Option(False, "--nearby", help="Only reports within NEARBY_RADIUS_KM"),
    sort: ReportSort = typer.Option(ReportSort.DATE_DESC, help="date-desc, date-asc or distance"),
):
    """
    List reports with optional filters.
    """
    if nearby and radius_km is None:
        radius_km = get_settings().nearby_radius_km
    state = _state()
    reports = filter_reports(state.reports, status=status, report_type=type, search=search)

    distances = None
    if lat is not None and lng is not None:
        distances = {
            r.id: calculate_distance_meters(lat, lng, r.location.lat, r.location.lng) / 1000
            for r in reports
        }
        if radius_km is not None:
            reports = [r for r in reports if distances[r.id] <= radius_km]
        if sort == ReportSort.DISTANCE:
            reports.sort(key=lambda r: distances[r.id])
    elif sort == ReportSort.DISTANCE or radius_km is not None:
        _fail("--lat and --lng are needed for distance filtering and sorting")

    if sort == ReportSort.DATE_ASC:
        reports.sort(key=lambda r: r.created_at)

    if not reports:
        console.print("[yellow]No reports found")
        return
    console.print(_reports_table(f"Reports ({len(reports)})", reports, distances))


@app.command()
def mine():
    """List the reports you submitted."""
    state = _state()
    reports = _run(state.my_reports)
    if not reports:
        console.print("[yellow]You have not submitted any reports yet")
        return
    console.print(_reports_table("My reports", reports))


@app.command()
def submit(
    type: str = typer.Option(..., "--type", help="Kind of bulky waste, e.g. furniture"),
    lat: float = typer.Option(..., help="Latitude"),
    lng: float = typer.Option(..., help="Longitude"),
    address: str = typer.Option("", help="Address"),
    description: str = typer.Option("", help="Description"),
    photo: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Photo file"),
    anonymous: bool = typer.Option(False, help="Hide your name on the report"),
):
    """Report bulky waste at a location."""
    photo_data = None
    if photo is not None:
        mime = mimetypes.guess_type(photo.name)[0] or "image/jpeg"
        photo_data = f"data:{mime};base64,{base64.b64encode(photo.read_bytes()).decode()}"

    try:
        new = ReportCreate(
            type=type,
            description=description,
            location=Location(lat=lat, lng=lng),
            address=address,
            photo=photo_data,
            anonymous=anonymous,
        )
    except ValidationError as e:
        _fail("Invalid report", str(e))
    state = _state()
    report = _run(lambda: state.submit(new))
    suffix = " (stored locally)" if state.offline or state.is_local else ""
    console.print(f"[green]Report created: [bold]{report.id}[/]{suffix}")


@app.command()
def status(
    report_id: str = typer.Argument(..., help="Report id"),
    new_status: ReportStatus = typer.Argument(..., help="in_progress or collected"),
):
    """Move a report forward (workers and admins)."""
    state = _state()
    report = _run(lambda: state.change_status(report_id, new_status))
    console.print(f"[green]{report.id} is now [bold]{report.status.value}")


@app.command()
def delete(
    report_id: str = typer.Argument(..., help="Report id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a report (admins)."""
    if not yes:
        typer.confirm(f"Delete {report_id}?", abort=True)
    state = _state()
    _run(lambda: state.delete(report_id))
    console.print(f"[green]Deleted {report_id}")


@app.command("load-sample")
def load_sample(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of reports"),
):
    """Load prepared reports from a JSON file (admins)."""
    try:
        documents = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {file}", str(e))
    if isinstance(documents, dict):
        documents = documents.get("sampleReports") or documents.get("reports") or []

    state = _state()
    count = _run(lambda: state.load_sample(documents))
    console.print(f"[green]Loaded {count} report(s)")


@app.command()
def stats():
    """Show dashboard statistics."""
    state = _state()
    result = _run(state.statistics)
    totals = result.totals

    table = Table(title="Reports by status")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    table.add_column("Share", justify="right")
    for label, count in (
        ("reported", totals.reported),
        ("in_progress", totals.in_progress),
        ("collected", totals.collected),
    ):
        share = round(count / totals.total * 100) if totals.total else 0
        table.add_row(label, str(count), f"{share}%")
    table.add_row("[bold]total", f"[bold]{totals.total}", "")
    console.print(table)

    resolution = result.resolution_time.display if result.resolution_time else "-"
    console.print(f"Average time to collection: [bold]{resolution}")

    if result.hotspots:
        hot = Table(title="Hotspots")
        hot.add_column("Street")
        hot.add_column("Reports", justify="right")
        for spot in result.hotspots:
            hot.add_row(spot.street, str(spot.count))
        console.print(hot)

    if result.types:
        types = Table(title="Most reported types")
        types.add_column("Type")
        types.add_column("Reports", justify="right")
        for item in result.types:
            types.add_row(item.type, str(item.count))
        console.print(types)


@app.command()
def health():
    """Check whether the API is up."""
    with _api() as api:
        try:
            body = api.health()
        except (ApiError, httpx.RequestError) as e:
            _fail(f"API is not healthy: {e}")
    console.print(f"[green]API status: {body['status']} ({body['timestamp']})")


if __name__ == "__main__":
    app()
