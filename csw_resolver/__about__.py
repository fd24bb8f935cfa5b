"""Metadata for csw_resolver."""

__all__ = [
    "__title__",
    "__version__",
    "__description__",
    "__credits__",
    "__requires_python__",
]

__title__ = "csw_resolver"
__version__ = "0.1.0"
__description__ = (
    "Resolve the best downloadable data URL and format from ISO 19139 / CSW metadata."
)
__credits__ = [
    {"name": "Matthew D. Martin", "email": "matthewdeanmartin@users.noreply.github.com"}
]
__requires_python__ = ">=3.9"
