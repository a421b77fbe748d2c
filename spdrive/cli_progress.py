"""Rich rendering of upload plans and chunk progress for sp-upload."""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from rich.console import Console
from rich.filesize import decimal
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import UploadConfig, UploadProgress, plan_chunks

console = Console(stderr=True)


def describe_chunks(total_size: int, config: UploadConfig) -> str:
    """One-line summary of how a payload will be sent."""
    if total_size <= config.direct_write_limit:
        return f"single request ({decimal(total_size)} <= {decimal(config.direct_write_limit)})"
    ranges = list(plan_chunks(total_size, config.chunk_size))
    first, last = ranges[-1]
    return (
        f"{len(ranges)} chunks of {decimal(config.chunk_size)}, "
        f"last {decimal(last - first + 1)} (bytes {first}-{last})"
    )


def render_upload_plan(
    source: str,
    destination: str,
    total_size: int,
    config: UploadConfig,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Print where the file goes and how it will be split."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("Source", source)
    table.add_row("Destination", destination)
    table.add_row("Size", f"{decimal(total_size)} ({total_size} bytes)")
    table.add_row("Transfer", describe_chunks(total_size, config))
    for key, value in (extra or {}).items():
        table.add_row(key, "-" if value is None else str(value))

    console.print(Panel(table, title="[bold green]sp-upload[/bold green]", border_style="blue"))


class ChunkProgress:
    """
    Progress bar driven by UploadProgress callbacks.

    Shows which chunk of the session is in flight and its byte range.

    Usage:
        with ChunkProgress("video.mp4", size, config) as progress:
            await adapter.write_stream(dest, stream, options, progress)
    """

    def __init__(self, name: str, total_size: int, config: UploadConfig):
        self.name = name
        self.total_size = total_size
        self.chunk_size = config.chunk_size
        self.chunk_count = max(math.ceil(total_size / self.chunk_size), 1)
        self._progress = Progress(
            TextColumn("[bold cyan]{task.fields[name]}"),
            BarColumn(bar_width=36),
            TextColumn("{task.fields[chunk]}"),
            TextColumn("[dim]{task.fields[span]}"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._task_id = None

    def _fields(self, uploaded: int) -> Dict[str, str]:
        if uploaded >= self.total_size:
            return {"chunk": f"{self.chunk_count}/{self.chunk_count} chunks", "span": "done"}
        index = uploaded // self.chunk_size
        last = min(uploaded + self.chunk_size, self.total_size) - 1
        return {
            "chunk": f"chunk {index + 1}/{self.chunk_count}",
            "span": f"bytes {uploaded}-{last}",
        }

    def __enter__(self) -> "ChunkProgress":
        self._progress.start()
        self._task_id = self._progress.add_task(
            "upload", total=self.total_size or None, name=self.name[:48], **self._fields(0)
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self._progress.update(self._task_id, span=f"[red]failed: {exc}")
        self._progress.stop()

    def __call__(self, progress: UploadProgress) -> None:
        self._progress.update(
            self._task_id,
            completed=progress.uploaded_bytes,
            **self._fields(progress.uploaded_bytes),
        )
