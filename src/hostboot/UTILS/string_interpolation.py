"""
Utilities for interpolating environment variables into bootstrap config files.
"""
import re
from typing import Dict

# ${VAR}, ${VAR:-default} and ${VAR:+value}; $$ escapes a literal dollar
_PATTERN = re.compile(r'\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)(?::(-|\+)([^}]*))?\}')

class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports ${VAR}, ${VAR:-default}, ${VAR:+value} and $$.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises KeyError: If a bare ${VAR} is not set in the context.
        """
        def replace(match):
            if match.group(0) == "$$":
                return "$"

            var_name, modifier, alt_value = match.group(1), match.group(2), match.group(3)
            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise KeyError(f"Variable {var_name} not found in context")
            return value

        return _PATTERN.sub(replace, template)
