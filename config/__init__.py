"""Runtime configuration: settings and the bundled instrument catalog."""
