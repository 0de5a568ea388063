"""Build pipeline core: configuration, tasks, pipelines and their services."""
