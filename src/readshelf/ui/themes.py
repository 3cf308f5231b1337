"""Textual CSS themes for readshelf."""

APP_CSS = """
/* ── Global ────────────────────────────────── */
Screen {
    background: $surface;
}

/* ── Library Screen ────────────────────────── */
#library-header {
    dock: top;
    height: 3;
    padding: 1 2;
    background: $primary;
    color: $text;
    text-style: bold;
}

#book-table {
    height: 1fr;
}

/* ── Reader Screen ─────────────────────────── */
#reader-header {
    dock: top;
    height: 1;
    background: $primary;
    color: $text;
    padding: 0 2;
    text-style: bold;
}

#reader-body {
    height: 1fr;
}

#page-caption {
    dock: bottom;
    height: 1;
    padding: 0 2;
    color: $text-muted;
    text-align: center;
}

#content-text {
    height: 1fr;
    padding: 1 4;
    overflow: hidden;
}

.loading-text {
    color: $warning;
    text-style: italic;
}

.error-text {
    color: $error;
    text-style: bold;
}
"""
