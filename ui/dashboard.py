"""Real-time CLI dashboard for proxy monitoring."""

from collections import Counter
from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from core.registry import UpstreamRegistry
from ui.log_utils import write_cli_log

console = Console()


class RequestInfo:
    """Info about a single forwarded request."""

    def __init__(self, identifier: str, verb: str, uri: str, status: int, timestamp: datetime):
        self.identifier = identifier
        self.verb = verb
        self.uri = uri[:60] + "..." if len(uri) > 60 else uri
        self.status = status
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing traffic per configured upstream."""

    def __init__(self, config: Config, registry: UpstreamRegistry):
        self.config = config
        self.registry = registry
        self._lock = Lock()
        self._recent: list[RequestInfo] = []
        self._max_recent = 10
        self._request_count: Counter[str] = Counter()
        self._not_found = 0
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_forward(
        self,
        identifier: str,
        verb: str,
        uri: str,
        status: int,
    ) -> None:
        """Log a request that reached its upstream."""
        with self._lock:
            self._request_count[identifier] += 1
            info = RequestInfo(identifier, verb, uri, status, datetime.now())
            self._recent.insert(0, info)
            self._recent = self._recent[: self._max_recent]
            write_cli_log("FORWARD", f"{verb} {uri}", upstream=identifier, status=status)
            self._refresh()

    def log_not_found(self, identifier: str) -> None:
        """Log a request for an identifier that is not configured."""
        with self._lock:
            self._not_found += 1
            write_cli_log("NOT_FOUND", "Unknown upstream", upstream=identifier)
            self._refresh()

    def log_error(self, identifier: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            truncated = message[:60] + "..." if len(message) > 60 else message
            self._errors.insert(0, f"{identifier} {status}: {truncated}")
            self._errors = self._errors[:3]
            write_cli_log("ERROR", message[:200], upstream=identifier, status=status)
            self._refresh()

    @property
    def request_count(self) -> dict[str, int]:
        return dict(self._request_count)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["body"].split_row(
            Layout(name="upstreams", ratio=1),
            Layout(name="recent", ratio=2),
        )

        layout["header"].update(self._build_header())
        layout["upstreams"].update(self._build_upstreams_panel())
        layout["recent"].update(self._build_recent_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Keyhole Proxy", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Forwarded: {sum(self._request_count.values())}", style="blue")
        stats.append("  |  ")
        stats.append(f"Unknown: {self._not_found}", style="yellow")
        stats.append("  |  ")
        scheme = "https" if self.config.proxy.tls_enabled else "http"
        stats.append(f"{scheme}://{self.config.proxy.host}:{self.config.proxy.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_upstreams_panel(self) -> Panel:
        """Build the per-upstream counter panel."""
        table = Table(show_header=True, header_style="bold", expand=True, box=None)
        table.add_column("Upstream")
        table.add_column("Requests", justify="right", width=8)

        for identifier in self.registry.identifiers():
            table.add_row(identifier, str(self._request_count.get(identifier, 0)))

        return Panel(table, title="[blue]Upstreams[/blue]", border_style="blue")

    def _build_recent_panel(self) -> Panel:
        """Build recent requests panel."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Upstream", width=16)
            table.add_column("Method", width=6)
            table.add_column("URI", ratio=2)
            table.add_column("Status", width=6)

            for req in self._recent:
                style = "green" if req.status < 400 else "red"
                table.add_row(
                    req.timestamp.strftime("%H:%M:%S"),
                    req.identifier[:16],
                    req.verb,
                    req.uri,
                    Text(str(req.status), style=style),
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[magenta]Recent requests[/magenta]", border_style="magenta")

    def _build_footer(self) -> Panel:
        """Build footer with errors."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            content = Text(
                f"{len(self.registry)} upstream(s) loaded from {self.config.proxy.apis_path}",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
