"""tptctl subcommands."""
