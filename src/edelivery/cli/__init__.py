"""Command-line interface: ``edelivery -c config.yaml [command]``."""
