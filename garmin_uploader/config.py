"""Client configuration, optionally read from the environment / ``.env``."""
from __future__ import annotations

from dataclasses import dataclass
from os import getenv

from dotenv import load_dotenv

from .models import Credentials


@dataclass
class ClientConfig:
	"""Configuration for a Garmin Connect client.

	Attributes
	----------
	consumer_key: str
		OAuth1 consumer key of the Garmin Connect mobile app.
	consumer_secret: str
		OAuth1 consumer secret matching ``consumer_key``.
	email: str | None
		Account e-mail, only used by host scripts.
	password: str | None
		Account password, only used by host scripts.
	timeout: float
		Total timeout in seconds for a single HTTP request.
	domain: str
		Garmin domain (``garmin.com`` or ``garmin.cn``).
	"""
	consumer_key: str
	consumer_secret: str
	email: str | None = None
	password: str | None = None
	timeout: float = 60.0
	domain: str = "garmin.com"
	user_agent: str = "com.garmin.android.apps.connectmobile"

	@property
	def sso_url(self) -> str:
		return f"https://sso.{self.domain}/sso"

	@property
	def connect_api_url(self) -> str:
		return f"https://connectapi.{self.domain}"

	@property
	def origin(self) -> str:
		return f"https://connect.{self.domain}"

	def credentials(self) -> Credentials | None:
		if not self.email or not self.password:
			return None
		return Credentials(self.email, self.password)

	@classmethod
	def from_env(cls, dotenv_path: str | None = None) -> "ClientConfig":
		"""Build a config from ``GARMIN_*`` environment variables.

		Values from a ``.env`` file are loaded first without overriding
		variables already present in the environment.
		"""
		load_dotenv(dotenv_path=dotenv_path, encoding="utf-8")
		consumer_key = getenv("GARMIN_CONSUMER_KEY")
		consumer_secret = getenv("GARMIN_CONSUMER_SECRET")
		if not consumer_key or not consumer_secret:
			raise ValueError("GARMIN_CONSUMER_KEY and GARMIN_CONSUMER_SECRET must be set")
		return cls(
			consumer_key=consumer_key,
			consumer_secret=consumer_secret,
			email=getenv("GARMIN_EMAIL"),
			password=getenv("GARMIN_PASSWORD"),
			timeout=float(getenv("GARMIN_TIMEOUT", "60")),
			domain=getenv("GARMIN_DOMAIN", "garmin.com"),
		)
