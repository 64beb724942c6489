"""
Provider profile normalization.

Every provider maps its raw profile to the canonical user shape
``{id, name, email, image, emailVerified}``. A caller-supplied
``map_profile_to_user`` sees the raw profile and its fields win over the
provider defaults, field by field.
"""

from typing import Any, Callable, Dict, Mapping, Optional

CANONICAL_FIELDS = ('id', 'name', 'email', 'image', 'emailVerified')


def normalize_profile(defaults: Mapping[str, Any], profile: Dict[str, Any],
                      map_profile_to_user: Optional[Callable[[Dict[str, Any]], Optional[Mapping[str, Any]]]] = None
                      ) -> Dict[str, Any]:
    """
    Merge caller overrides over the provider's default mapping.

    Args:
        defaults: Provider default mapping of the raw profile
        profile: Raw provider profile, passed to the override
        map_profile_to_user: Optional override; None or an empty mapping keeps the defaults

    Returns:
        Normalized user dictionary
    """
    user = dict(defaults)
    if map_profile_to_user is not None:
        overrides = map_profile_to_user(profile)
        if overrides:
            user.update(overrides)
    return user
