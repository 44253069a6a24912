"""HTML renderers for assessment forms, summaries and list pages."""
