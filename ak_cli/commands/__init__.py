"""ak subcommands: install, uninstall, list, update, clean."""
