"""Project configuration, file layout and frontmatter helpers."""
