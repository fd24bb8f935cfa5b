# csw_resolver/ui.py
# Presentation-only utilities for CLI output.
from __future__ import annotations

from typing import IO, Optional

from csw_resolver.models import RecordPage, ResolutionResult, Resource


def _writeln(text: str = "", *, file: IO[str]) -> None:
    file.write(text + "\n")


def render_resolve_header(catalog_url: str, resource_id: str, *, file: IO[str]) -> None:
    _writeln(f"Resolving download link for: {resource_id} ({catalog_url})...", file=file)


def render_resolution(result: Optional[ResolutionResult], *, file: IO[str]) -> None:
    if result is None:
        _writeln("\nNo viable download link found.", file=file)
        return
    _writeln(f"\nFormat: {result.format}", file=file)
    _writeln(f"URL:    {result.url}", file=file)


def render_resource(resource: Resource, *, file: IO[str]) -> None:
    _writeln(f"\n{resource.title}", file=file)
    if resource.description:
        _writeln(f"  {resource.description}", file=file)
    _writeln(f"- format:  {resource.format}", file=file)
    _writeln(f"- file:    {resource.file_path} ({resource.size} bytes)", file=file)
    _writeln(f"- updated: {resource.updated_at}", file=file)


def render_record_page(page: RecordPage, page_number: int, *, file: IO[str]) -> None:
    _writeln(
        f"{page.count} matching records (page {page_number}, {len(page.results)} shown)",
        file=file,
    )
    if not page.results:
        return
    _writeln("", file=file)
    for rec in page.results:
        _writeln(f"- [{rec.format:<10}] {rec.id}  {rec.title}  ({rec.updated_at})", file=file)


def render_error(message: str, *, file: IO[str]) -> None:
    _writeln(f"\nError: {message}", file=file)
