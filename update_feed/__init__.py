"""Token-authenticated Composer package feed and telemetry service."""
