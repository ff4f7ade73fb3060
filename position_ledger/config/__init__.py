"""Runtime and migration settings for the position ledger service."""

from .settings import (
	AppSettings,
	DatabaseUrlSettings,
	SettingsLoadError,
	config_load_database_url,
	config_load_settings,
)

__all__ = [
	"AppSettings",
	"DatabaseUrlSettings",
	"SettingsLoadError",
	"config_load_database_url",
	"config_load_settings",
]
