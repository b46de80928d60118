"""Compact output formatters for MCP tool responses."""

from code_linker.models.features import AnalysisResult
from code_linker.models.knowledge import KnowledgeEntry
from code_linker.models.links import LinkResponse, SectionLink
from code_linker.models.tags import TagDimension


def format_link_header(link: SectionLink) -> str:
    """Format: [js-sec-3-5] async/await (85%, high)."""
    return f"[{link.section_id}] {link.title} ({link.relevance_score:.0%}, {link.confidence})"


def format_link(link: SectionLink) -> str:
    """Header + chapter line + optional explanation."""
    lines = [format_link_header(link), f"  {link.chapter_title} | {link.match_type}"]
    if link.explanation:
        lines.append(f"  ↳ {link.explanation}")
    return "\n".join(lines)


def format_links_response(response: LinkResponse, note: str | None = None) -> str:
    """Counted list of links.

    A rejected request (4xx) is an actionable error line; any other failure
    reads as an empty result with the cause as a note.
    """
    if not response.success:
        problem = response.error or "unknown error"
        if response.details:
            problem = f"{problem} ({response.details})"
        if (response.details or "").startswith("status 4"):
            return f"Error: {problem}"
        lines = ["No related knowledge found.", f"Note: {problem}"]
        if note:
            lines.append(f"Note: {note}")
        return "\n".join(lines)
    return format_result_list(
        [format_link(link) for link in response.data],
        header=f"Matching: {response.matching_method}",
        note=note,
    )


def format_entry_header(entry: KnowledgeEntry) -> str:
    """Format: [js-sec-3-5] async/await | intermediate."""
    return f"[{entry.id}] {entry.title} | {entry.difficulty}"


def format_entry_tags(entry: KnowledgeEntry) -> list[str]:
    """One line per non-empty tag dimension."""
    return [
        f"  {dimension}: {', '.join(entry.tags.for_dimension(dimension))}"
        for dimension in TagDimension
        if entry.tags.for_dimension(dimension)
    ]


def format_entry_full(
    entry: KnowledgeEntry,
    prerequisites: list[KnowledgeEntry] | None = None,
    related: list[KnowledgeEntry] | None = None,
) -> str:
    """Header + chapter + tags + keywords + prerequisite and related titles. For kb_entry."""
    lines = [format_entry_header(entry), f"  {entry.chapter_title} ({entry.language})"]
    lines.extend(format_entry_tags(entry))
    if entry.keywords:
        lines.append(f"  keywords: {', '.join(entry.keywords)}")
    if prerequisites:
        lines.append("  Prerequisites:")
        lines.extend(f"    [{p.id}] {p.title}" for p in prerequisites)
    if related:
        lines.append("  Related:")
        lines.extend(f"    [{r.id}] {r.title}" for r in related)
    return "\n".join(lines)


def format_analysis(result: AnalysisResult) -> str:
    """Language, one line per tag dimension, complexity, then any problems."""
    features = result.features
    metrics = features.complexity
    lines = [f"language: {result.language or 'unsupported'}"]
    for name, tags in (
        ("syntax", features.syntax),
        ("patterns", features.patterns),
        ("apis", features.apis),
        ("concepts", features.concepts),
    ):
        lines.append(f"{name}: {', '.join(sorted(tags)) if tags else '-'}")
    lines.append(
        f"complexity: {metrics.level} (cyclomatic {metrics.cyclomatic_complexity}, "
        f"cognitive {metrics.cognitive_complexity}, lines {metrics.line_count}, "
        f"depth {metrics.max_depth})"
    )
    context = features.context
    if context.imports:
        lines.append(f"imports: {', '.join(imp.source for imp in context.imports)}")
    if context.exports:
        lines.append(f"exports: {', '.join(exp.name for exp in context.exports)}")
    for diagnostic in result.diagnostics:
        lines.append(f"[{diagnostic.kind}] {diagnostic.message}")
    for warning in result.warnings:
        lines.append(f"Note: {warning}")
    return "\n".join(lines)


def format_result_list(
    formatted_entries: list[str],
    header: str | None = None,
    note: str | None = None,
) -> str:
    """Header + count + note + entries joined by blank lines."""
    if not formatted_entries:
        return "No results found."

    lines: list[str] = []
    if header:
        lines.append(header)
    lines.append(f"{len(formatted_entries)} result(s)")
    if note:
        lines.append(f"Note: {note}")
    lines.append("")
    lines.append("\n\n".join(formatted_entries))
    return "\n".join(lines)
