"""ChatVault: archive chat transcripts and answer questions from them."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("chatvault")
except importlib.metadata.PackageNotFoundError:
    __version__ = "dev"
