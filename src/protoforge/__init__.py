"""ProtoForge: prompt-to-prototype generation and surgical edits."""

__version__ = "0.1.0"
