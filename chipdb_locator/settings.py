"""
Locator configuration

The install prefix and chipdb subdirectory are fixed when the tool is
packaged. The environment can override both for relocated installs.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_PREFIX = "/usr/local"
DEFAULT_CHIPDB_SUBDIR = "icebox"

TRUTHY = ("1", "true", "yes", "on")


class LocatorSettings(BaseModel):
    """Where chipdb files are installed"""
    prefix: str = Field(default=DEFAULT_PREFIX, min_length=1)
    subdir: str = Field(default=DEFAULT_CHIPDB_SUBDIR, min_length=1)
    verbose: bool = False

    @field_validator('subdir')
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        v = v.strip('/')
        if not v:
            raise ValueError("subdir must name a directory")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "LocatorSettings":
        """
        Build settings from CHIPDB_PREFIX, CHIPDB_SUBDIR and CHIPDB_VERBOSE.

        Args:
            environ: Environment mapping; defaults to os.environ
            **overrides: Values that take precedence over the environment;
                None values are ignored

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        environ = os.environ if environ is None else environ
        values = {
            'prefix': environ.get('CHIPDB_PREFIX', DEFAULT_PREFIX),
            'subdir': environ.get('CHIPDB_SUBDIR', DEFAULT_CHIPDB_SUBDIR),
            'verbose': environ.get('CHIPDB_VERBOSE', '').strip().lower() in TRUTHY,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
