"""Services layer.

- log_entries.py: Normalized log records
- log_sync.py: Ingestion pipeline
- command_parser.py / game_commands.py: In-game staff commands
- player_resolver.py: Partial name to player lookup
- raid_filter.py: Raid detection glue
- collaborators.py: Automation, raid detector and entitlement interfaces
"""
