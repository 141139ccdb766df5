"""Package registry adapters."""

from pkgrater.adapters.base import BaseAdapter, PackageNotFoundError, parse_repo_url
from pkgrater.adapters.npm import NpmAdapter

__all__ = ["BaseAdapter", "NpmAdapter", "PackageNotFoundError", "parse_repo_url"]
