"""clip-relay: forwards newly published Twitch clips to Discord channels."""

__version__ = "0.1.0"
