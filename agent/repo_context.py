"""Repository context gathered for prompts that ask about the project."""

from pathlib import Path

CONTEXT_TRIGGERS = (
    "summarize",
    "explain",
    "understand",
    "what is this",
    "what does",
    "describe",
    "about this",
)

KEY_FILES = ("README.md", "Cargo.toml", "package.json", "pyproject.toml", "go.mod")
KEY_FILE_PREVIEW_CHARS = 1500


def needs_repo_context(prompt: str) -> bool:
    prompt_lower = prompt.lower()
    return any(trigger in prompt_lower for trigger in CONTEXT_TRIGGERS)


def gather_repo_context(root: str | Path) -> str:
    """List the top-level entries of `root` and preview its well-known project files."""
    root = Path(root)
    lines = ["FILES:"]
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError:
        entries = []
    for entry in entries:
        prefix = "📁 " if entry.is_dir() else "📄 "
        lines.append(f"{prefix}{entry.name}")

    context = "\n".join(lines) + "\n"
    for name in KEY_FILES:
        path = root / name
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        context += f"\n--- {name} ---\n{content[:KEY_FILE_PREVIEW_CHARS]}\n"
    return context
