from sidekick.cli import main_entry

raise SystemExit(main_entry())
