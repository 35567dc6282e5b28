"""
Lineage visualization utilities.

Plain-text formats for showing generation history and branches.
"""

from datetime import datetime, timezone

from dnathreads.lineage.generation import Generation
from dnathreads.lineage.session import ThreadSession


def format_time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    """
    Relative age of a timestamp ("just now", "5m ago", "3h ago", or a date).

    Args:
        timestamp: The moment to describe.
        now: Reference time (default: current time in the timestamp's zone).
    """
    if now is None:
        now = datetime.now(timezone.utc) if timestamp.tzinfo else datetime.now()

    seconds = (now - timestamp).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return timestamp.strftime("%Y-%m-%d")


def _labels(session: ThreadSession, generation: Generation) -> str:
    labels = []
    if session.is_current(generation.id, generation.file_name):
        labels.append("HEAD")
    for branch in session.list_branches(generation.file_name, include_retired=False):
        if branch.head_generation_id == generation.id:
            labels.append(branch.name)
    return f" ({', '.join(labels)})" if labels else ""


def format_lineage_tree(
    session: ThreadSession,
    file_name: str,
    include_rejected: bool = True,
) -> str:
    """
    Format the generation tree of a file, similar to `git log --graph`.

    Args:
        session: The thread session.
        file_name: File whose lineage to show.
        include_rejected: Whether to show rejected generations.

    Returns:
        Formatted tree string.
    """
    tree = session.build_tree(file_name, include_rejected)

    if not tree.roots:
        return f"No generations for {file_name}."

    lines = [file_name]

    # (generation_id, prefix, is_last); pushed in reverse so siblings pop in order
    stack = [
        (root_id, "", i == len(tree.roots) - 1)
        for i, root_id in reversed(list(enumerate(tree.roots)))
    ]

    while stack:
        generation_id, prefix, is_last = stack.pop()
        generation = session.get(generation_id)
        connector = "└── " if is_last else "├── "
        rejected = " [rejected]" if generation.is_rejected else ""
        lines.append(
            f"{prefix}{connector}{generation.id} [{generation.tag}]"
            f"{_labels(session, generation)} {generation.description}{rejected}"
        )

        children = tree.children.get(generation_id, [])
        child_prefix = prefix + ("    " if is_last else "│   ")
        for i in reversed(range(len(children))):
            stack.append((children[i], child_prefix, i == len(children) - 1))

    return "\n".join(lines)


def format_log(session: ThreadSession, generation_id: str) -> str:
    """
    Format the ancestor chain of a generation, newest first.

    Args:
        session: The thread session.
        generation_id: Starting generation.

    Returns:
        Formatted log string.
    """
    lines = []

    for ancestor_id in session.ancestors_of(generation_id):
        generation = session.get(ancestor_id)
        lines.append(f"generation {generation.id}{_labels(session, generation)}")
        lines.append(f"File:   {generation.file_name}")
        lines.append(f"Tag:    {generation.tag}")
        lines.append(f"Date:   {generation.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
        if generation.parent_id:
            lines.append(f"Parent: {generation.parent_id}")
        if generation.is_rejected:
            lines.append("Status: rejected")
        lines.append("")
        lines.append(f"    {generation.description}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_path(session: ThreadSession, generation_id: str) -> str:
    """Breadcrumb of a generation, root first."""
    return " > ".join(session.path_to(generation_id))


def format_branches(session: ThreadSession, file_name: str) -> str:
    """
    Format the branch list of a file, similar to `git branch`.

    The active branch is marked with ``*``.
    """
    branches = session.list_branches(file_name)

    if not branches:
        return f"No branches for {file_name}."

    active = session.active_branch_id(file_name)
    lines = []

    for branch in branches:
        marker = "* " if branch.id == active else "  "
        if branch.retired:
            lines.append(f"{marker}{branch.name} ({branch.id}) retired")
        else:
            lines.append(
                f"{marker}{branch.name} ({branch.id}) "
                f"{branch.origin_generation_id} -> {branch.head_generation_id}"
            )

    return "\n".join(lines)


def format_generation_detail(generation: Generation, max_chars: int | None = None) -> str:
    """
    Format detailed information about a single generation.

    Args:
        generation: The generation to format.
        max_chars: Truncate the code listing after this many characters.

    Returns:
        Formatted generation details.
    """
    code = generation.code
    if max_chars is not None and len(code) > max_chars:
        code = code[:max_chars] + "\n..."

    lines = [
        f"Generation: {generation.id}",
        f"File:       {generation.file_name}",
        f"Tag:        {generation.tag}",
        f"Status:     {generation.status}",
        f"Created:    {generation.created_at.isoformat()} ({format_time_ago(generation.created_at)})",
        f"Parent:     {generation.parent_id or '(root)'}",
        f"Checksum:   {generation.code_hash}",
        "",
        f"{generation.description}",
        "",
        code,
    ]

    return "\n".join(lines)


def format_stats(session: ThreadSession, file_name: str | None = None) -> str:
    """Generation counts per tag, e.g. ``HEX generations: 3``."""
    counts = session.tag_counts(file_name)

    if not counts:
        return "No generations yet."

    return "\n".join(f"{tag.upper()} generations: {count}" for tag, count in counts.items())
