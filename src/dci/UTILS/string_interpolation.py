"""
Utilities for compose-style variable substitution.
"""
import re
from typing import Mapping

from ..errors import ManifestError


class EnvironmentInterpolator:
    """
    Substitutes environment variables the way docker compose does.
    Supports $VAR, ${VAR}, ${VAR:-default}, ${VAR-default}, ${VAR:+value},
    ${VAR+value}, ${VAR:?error} and ${VAR?error}.
    An escaped $$ becomes a literal $.
    """
    # Group 1: $$ escape
    # Group 2: braced name, group 3: modifier, group 4: modifier argument
    # Group 5: bare name
    PATTERN = re.compile(
        r'\$(?:(\$)'
        r'|\{([A-Za-z_][A-Za-z0-9_]*)(?:(:?[-+?])([^}]*))?\}'
        r'|([A-Za-z_][A-Za-z0-9_]*))'
    )

    @classmethod
    def interpolate(cls, template: str, context: Mapping[str, str]) -> str:
        """
        Interpolates variables in the template string using the provided context.
        Unset variables without a modifier become empty strings.

        :param template: Text containing variable references.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises ManifestError: If a ${VAR:?error} variable is unset.
        """
        def replace(match):
            if match.group(1):
                return '$'

            name = match.group(2) or match.group(5)
            modifier = match.group(3)
            argument = match.group(4) or ''
            value = context.get(name)

            if modifier is None:
                return value or ''

            # With a colon, an empty value counts as unset
            is_set = bool(value) if modifier.startswith(':') else value is not None
            kind = modifier[-1]

            if kind == '-':
                return value if is_set else argument
            if kind == '+':
                return argument if is_set else ''
            if not is_set:
                raise ManifestError(argument or f"Required variable {name} is not set")
            return value

        return cls.PATTERN.sub(replace, template)
