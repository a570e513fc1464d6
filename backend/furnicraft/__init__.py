"""FurniCraft API: furniture design upload, AI material breakdown and supplier pricing."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("furnicraft")
except PackageNotFoundError:
    # Running from a source checkout without an install
    __version__ = "0.0.0"
