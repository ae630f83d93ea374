"""Cross-cutting helpers: logging, constants and exceptions."""
