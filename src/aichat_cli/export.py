"""Export saved contexts to Markdown and JSON formats."""

import json

from .core import Context


def context_to_markdown(context: Context) -> str:
    """Export a context and its transcript as clean Markdown."""
    lines = [f"# {context.name}", ""]

    if context.created_at:
        lines.append(f"**Created:** {context.created_at.isoformat()}")
    if context.updated_at:
        lines.append(f"**Updated:** {context.updated_at.isoformat()}")
    lines.append(f"**Messages:** {len(context.messages)}")
    lines.extend(["", "---", ""])

    for msg in context.messages:
        lines.append(f"## {msg.role.capitalize()}")
        lines.append("")
        lines.append(msg.content)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def context_to_json(context: Context) -> str:
    """Export a context in the same shape it is stored on disk."""
    data = {
        "name": context.name,
        "messages": [msg.to_dict() for msg in context.messages],
        "createdAt": context.created_at.isoformat() if context.created_at else None,
        "updatedAt": context.updated_at.isoformat() if context.updated_at else None,
    }
    return json.dumps(data, indent=2, ensure_ascii=False)
